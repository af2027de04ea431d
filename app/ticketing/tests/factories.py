"""
Factory Boy factories for ticketing test data.

This module provides factories for the ticketing models, dict factories
shaped like the Stripe objects the pipeline reads, and small fakes for the
collaborators TransactionMaterializer accepts.

Usage:
    from ticketing.tests.factories import (
        CheckoutSessionDataFactory,
        PaymentIntentDataFactory,
        RetryJobFactory,
        make_event,
    )

    # A payment_intent.succeeded event dict
    event = make_event(
        "payment_intent.succeeded",
        PaymentIntentDataFactory(id="pi_1", amount=5000),
    )

    # A failed retry job
    job = RetryJobFactory(status=RetryJobStatus.FAILED, attempts=3)
"""

import hashlib
import hmac
import json
import time
import uuid

import factory

from ticketing.events import CheckoutSessionPayload
from ticketing.exceptions import SessionNotFound
from ticketing.models import Document, RetryJob
from ticketing.state_machines import RetryJobStatus

FAKE_QR_URL = "data:image/png;base64,ZmFrZS1xcg=="


# =============================================================================
# Metadata helpers
# =============================================================================


def build_user(**overrides) -> dict:
    """User record as stored in the checkout session metadata."""
    user = {
        "uid": "user_1",
        "email": "buyer@example.com",
        "name": "Ada Buyer",
        "eventId": "evt_expo",
        "eventTitle": "Expo",
        "eventDate": "2026-11-20",
        "eventTime": "19:30",
        "eventLocation": "Hall A",
        "eventImage": "https://cdn.example.com/expo.png",
        "refunds": "none",
    }
    user.update(overrides)
    return user


def build_tickets(count: int = 2) -> list:
    return [
        {
            "title": f"General Admission {index + 1}",
            "price": 25,
            "bookingFee": 1.5,
            "quantity": 1,
        }
        for index in range(count)
    ]


def build_metadata(user=None, tickets=None, organizer=None) -> dict:
    """
    Session metadata with JSON-encoded user, tickets and organizer entries.

    Pass a string to store it unencoded (e.g. malformed JSON).
    """

    def encode(value):
        return value if isinstance(value, str) else json.dumps(value)

    return {
        "user": encode(build_user() if user is None else user),
        "tickets": encode(build_tickets() if tickets is None else tickets),
        "organizer": encode(
            {"organizerId": "org_1", "organizer": "Expo Ltd"}
            if organizer is None
            else organizer
        ),
    }


# =============================================================================
# Stripe object factories
# =============================================================================


class PaymentIntentDataFactory(factory.DictFactory):
    """
    Stripe PaymentIntent object as delivered in payment_intent.* events.

    Example:
        intent = PaymentIntentDataFactory(id="pi_1", amount=5000)
    """

    id = factory.Sequence(lambda n: f"pi_test_{n}")
    object = "payment_intent"
    amount = 5000
    currency = "gbp"
    status = "succeeded"
    created = 1763600000
    charges = factory.LazyFunction(
        lambda: {
            "object": "list",
            "data": [
                {
                    "id": "ch_test",
                    "payment_method_details": {
                        "type": "card",
                        "card": {"last4": "4242", "brand": "visa"},
                    },
                }
            ],
        }
    )


class CheckoutSessionDataFactory(factory.DictFactory):
    """
    Stripe Checkout Session object.

    Example:
        session = CheckoutSessionDataFactory(id="cs_1", payment_intent="pi_1")
    """

    id = factory.Sequence(lambda n: f"cs_test_{n}")
    object = "checkout.session"
    payment_intent = factory.Sequence(lambda n: f"pi_test_{n}")
    amount_total = 5000
    currency = "gbp"
    payment_status = "paid"
    customer_email = "buyer@example.com"
    created = 1763599900
    metadata = factory.LazyFunction(build_metadata)


def make_event(event_type: str, obj: dict, event_id: str | None = None) -> dict:
    """Wrap a Stripe object in an event envelope."""
    return {
        "id": event_id or f"evt_test_{uuid.uuid4().hex[:12]}",
        "object": "event",
        "type": event_type,
        "created": 1763600001,
        "data": {"object": obj},
    }


def sign_payload(payload: str, secret: str, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for ``payload``."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


# =============================================================================
# Model factories
# =============================================================================


class DocumentFactory(factory.django.DjangoModelFactory):
    """Factory for Document rows; defaults to an empty payments document."""

    class Meta:
        model = Document

    collection = "payments"
    document_id = factory.Sequence(lambda n: f"pi_doc_{n}")
    data = factory.LazyFunction(dict)


class RetryJobFactory(factory.django.DjangoModelFactory):
    """
    Factory for RetryJob rows.

    Default creates a PENDING save_transaction job.

    Example:
        job = RetryJobFactory(
            status=RetryJobStatus.FAILED,
            attempts=3,
            last_error="CommitFailed: database is locked",
        )
    """

    class Meta:
        model = RetryJob

    name = "save_transaction"
    payment_intent_id = factory.Sequence(lambda n: f"pi_job_{n}")
    payload = factory.LazyAttribute(
        lambda o: {"paymentIntentId": o.payment_intent_id}
    )
    status = RetryJobStatus.PENDING
    attempts = 0


# =============================================================================
# Collaborator fakes
# =============================================================================


class FakeQrEncoder:
    """QrEncoder that records its input and returns a fixed data URL."""

    def __init__(self, result: str = FAKE_QR_URL, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = []

    def encode(self, data: dict) -> str:
        self.calls.append(data)
        if self.error is not None:
            raise self.error
        return self.result


class FakeSessionLookup:
    """Session lookup backed by a dict of payment intent id -> session."""

    def __init__(self, sessions: dict | None = None):
        self.sessions = dict(sessions or {})
        self.calls = []

    def add(self, session_data: dict) -> CheckoutSessionPayload:
        session = CheckoutSessionPayload.from_dict(session_data)
        self.sessions[session.payment_intent] = session
        return session

    def __call__(self, payment_intent_id: str) -> CheckoutSessionPayload:
        self.calls.append(payment_intent_id)
        session = self.sessions.get(payment_intent_id)
        if session is None:
            raise SessionNotFound(
                f"No checkout session found for PaymentIntent {payment_intent_id}",
                details={"payment_intent_id": payment_intent_id},
            )
        return session
