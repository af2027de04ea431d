"""
Tests for TransactionMaterializer and its helpers.

Tests cover:
- Records built from payment and checkout events
- Ticket id generation
- Rejection of incomplete bookings
- QR encoder failures
- Failure patch construction
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ticketing.events import decode_event
from ticketing.exceptions import IncompleteBookingData, QrEncodingFailed, SessionNotFound
from ticketing.services import (
    TransactionMaterializer,
    build_failure_patch,
    generate_ticket_ids,
)
from ticketing.state_machines import RecordOrigin, RefundStatus, TransactionStatus
from ticketing.tests.factories import (
    CheckoutSessionDataFactory,
    FakeQrEncoder,
    PaymentIntentDataFactory,
    build_metadata,
    make_event,
)


def payment_succeeded(payment_intent_id="pi_1", **intent):
    return decode_event(
        make_event(
            "payment_intent.succeeded",
            PaymentIntentDataFactory(id=payment_intent_id, **intent),
        )
    )


def checkout_completed(session_id="cs_1", payment_intent_id="pi_1", **session):
    return decode_event(
        make_event(
            "checkout.session.completed",
            CheckoutSessionDataFactory(
                id=session_id, payment_intent=payment_intent_id, **session
            ),
        )
    )


# =============================================================================
# Ticket IDs
# =============================================================================


class TestGenerateTicketIds:
    """Tests for generate_ticket_ids."""

    def test_ids_are_prefixed(self):
        """Should return tkt_-prefixed ids of fixed length."""
        ids = generate_ticket_ids("pi_1", 3)

        assert len(ids) == 3
        assert all(ticket_id.startswith("tkt_") for ticket_id in ids)
        assert all(len(ticket_id) == 24 for ticket_id in ids)

    def test_ids_unique_within_call(self):
        """Should never repeat an id within one call."""
        ids = generate_ticket_ids("pi_1", 1000)

        assert len(set(ids)) == 1000

    def test_ids_differ_across_calls(self):
        """Should draw a new salt on every call."""
        assert generate_ticket_ids("pi_1", 2) != generate_ticket_ids("pi_1", 2)

    def test_zero_count(self):
        assert generate_ticket_ids("pi_1", 0) == []


# =============================================================================
# Payment events
# =============================================================================


class TestMaterializePayment:
    """Tests for materializing payment_intent.succeeded events."""

    @pytest.fixture
    def session(self, session_lookup):
        return session_lookup.add(
            CheckoutSessionDataFactory(id="cs_1", payment_intent="pi_1", amount_total=5000)
        )

    def test_builds_record(self, materializer, session):
        """Should build a succeeded record with payment and checkout details."""
        record = materializer.materialize(payment_succeeded("pi_1", amount=5000))

        assert record.transaction_id == "pi_1"
        assert record.session_id == "cs_1"
        assert record.user_id == "user_1"
        assert record.origin == RecordOrigin.PAYMENT
        assert record.status == TransactionStatus.SUCCEEDED
        assert record.verified is False
        assert record.terms_version == "v1.0"
        assert record.payment.amount == Decimal("50.00")
        assert record.payment.currency == "gbp"
        assert record.payment.payment_method.last4 == "4242"
        assert record.payment.payment_method.brand == "visa"
        assert record.payment.refund.status == RefundStatus.NOT_REFUNDED
        assert record.payment.refund.amount is None
        assert record.checkout.amount_total == Decimal("50.00")
        assert record.checkout.customer_name == "Ada Buyer"
        assert record.event_details.event_title == "Expo"
        assert record.organizer_details.organizer_name == "Expo Ltd"

    def test_tickets_get_ids_and_valid_status(self, materializer, session):
        """Should issue a distinct id and valid status per ticket."""
        record = materializer.materialize(payment_succeeded("pi_1"))

        ids = [ticket.generated_id for ticket in record.tickets]
        assert len(ids) == 2
        assert len(set(ids)) == 2
        assert all(ticket.status == "valid" for ticket in record.tickets)
        assert record.tickets[0].title == "General Admission 1"

    def test_converts_minor_units_with_rounding(self, materializer, session):
        """Should convert odd minor amounts to two decimal places."""
        record = materializer.materialize(payment_succeeded("pi_1", amount=1999))

        assert record.payment.amount == Decimal("19.99")

    def test_missing_card_details_are_empty_strings(self, materializer, session):
        record = materializer.materialize(payment_succeeded("pi_1", charges=None))

        assert record.payment.payment_method.last4 == ""
        assert record.payment.payment_method.brand == ""

    def test_qr_payload(self, materializer, session, qr_encoder):
        """Should encode transaction id, user id and the metadata tickets."""
        record = materializer.materialize(payment_succeeded("pi_1"))

        assert record.qr_code_url == qr_encoder.result
        payload = qr_encoder.calls[0]
        assert payload["id"] == "pi_1"
        assert payload["user"] == "user_1"
        assert len(payload["tickets"]) == 2
        assert "generatedId" not in payload["tickets"][0]

    def test_session_not_found(self, materializer):
        """Should surface SessionNotFound from the lookup."""
        with pytest.raises(SessionNotFound) as exc_info:
            materializer.materialize(payment_succeeded("pi_missing"))

        assert exc_info.value.is_retryable

    def test_missing_tickets(self, materializer, session_lookup):
        """Should reject a session without tickets."""
        session_lookup.add(
            CheckoutSessionDataFactory(
                payment_intent="pi_1", metadata=build_metadata(tickets=[])
            )
        )

        with pytest.raises(IncompleteBookingData) as exc_info:
            materializer.materialize(payment_succeeded("pi_1"))

        assert exc_info.value.details["missing"] == ["tickets"]
        assert not exc_info.value.is_retryable

    def test_missing_user(self, materializer, session_lookup):
        """Should reject a session whose user entry cannot be decoded."""
        session_lookup.add(
            CheckoutSessionDataFactory(
                payment_intent="pi_1", metadata=build_metadata(user="not-json")
            )
        )

        with pytest.raises(IncompleteBookingData) as exc_info:
            materializer.materialize(payment_succeeded("pi_1"))

        assert exc_info.value.details["missing"] == ["user"]

    def test_qr_failure_is_retryable(self, session_lookup, session):
        """Should wrap encoder errors in QrEncodingFailed."""
        materializer = TransactionMaterializer(
            session_lookup=session_lookup,
            qr_encoder=FakeQrEncoder(error=RuntimeError("encoder down")),
        )

        with pytest.raises(QrEncodingFailed) as exc_info:
            materializer.materialize(payment_succeeded("pi_1"))

        assert exc_info.value.is_retryable
        assert "encoder down" in exc_info.value.details["error"]


# =============================================================================
# Checkout events
# =============================================================================


class TestMaterializeCheckout:
    """Tests for materializing checkout.session.completed events."""

    def test_builds_record_without_payment(self, materializer, session_lookup):
        """Should build a checkout record from the event's own session."""
        record = materializer.materialize(checkout_completed("cs_9", "pi_9"))

        assert record.transaction_id == "pi_9"
        assert record.session_id == "cs_9"
        assert record.origin == RecordOrigin.CHECKOUT
        assert record.payment is None
        assert "payment" not in record.to_document()
        assert record.checkout.status == "paid"
        assert session_lookup.calls == []

    def test_missing_payment_intent(self, materializer):
        """Should reject a checkout session without a payment intent."""
        with pytest.raises(IncompleteBookingData):
            materializer.materialize(checkout_completed("cs_9", None))


# =============================================================================
# Failure patches
# =============================================================================


class TestBuildFailurePatch:
    """Tests for build_failure_patch."""

    NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)

    def test_uses_provider_error(self):
        event = decode_event(
            make_event(
                "payment_intent.payment_failed",
                PaymentIntentDataFactory(
                    id="pi_1",
                    last_payment_error={"code": "card_declined", "message": "Declined"},
                ),
            )
        )

        patch = build_failure_patch(event, now=self.NOW)

        assert patch.error_code == "card_declined"
        assert patch.error_message == "Declined"
        assert patch.to_document() == {
            "status": "failed",
            "failure": {
                "errorCode": "card_declined",
                "errorMessage": "Declined",
                "timestamp": "2026-01-05T12:00:00+00:00",
            },
        }

    def test_defaults_when_provider_sends_no_error(self):
        event = decode_event(
            make_event("payment_intent.payment_failed", PaymentIntentDataFactory(id="pi_1"))
        )

        patch = build_failure_patch(event, now=self.NOW)

        assert patch.error_code == "unknown_error"
        assert patch.error_message == "Unknown error occurred"

    def test_async_failure(self):
        event = decode_event(
            make_event(
                "checkout.session.async_payment_failed",
                CheckoutSessionDataFactory(payment_intent="pi_1"),
            )
        )

        patch = build_failure_patch(event, now=self.NOW)

        assert patch.error_code == "async_payment_failed"
        assert patch.error_message == "Asynchronous payment failed"
