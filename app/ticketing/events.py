"""
Typed Stripe webhook events.

The ``data.object`` of a Stripe event changes shape with the event type.
``decode_event`` turns a verified event dict into one variant of a small
tagged union, so handlers receive a typed payload instead of probing
nested dicts.

Variants:
    PaymentSucceededEvent   - payment_intent.succeeded
    CheckoutCompletedEvent  - checkout.session.completed
    PaymentFailedEvent      - payment_intent.payment_failed
    AsyncPaymentFailedEvent - checkout.session.async_payment_failed
    UnknownEvent            - anything else (acknowledged and ignored)

Usage:
    from ticketing.events import decode_event

    event = decode_event(StripeAdapter.verify_webhook_signature(body, sig))
    if isinstance(event, PaymentSucceededEvent):
        print(event.payment_intent.amount)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

from ticketing.types import timestamp_to_datetime


class EventKind:
    """Stripe event type strings handled by the ingestion pipeline."""

    PAYMENT_SUCCEEDED = "payment_intent.succeeded"
    CHECKOUT_COMPLETED = "checkout.session.completed"
    PAYMENT_FAILED = "payment_intent.payment_failed"
    ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"


# =============================================================================
# Payload types
# =============================================================================


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return None


@dataclass(frozen=True)
class PaymentIntentPayload:
    """
    The parts of a Stripe PaymentIntent the pipeline reads.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        amount: Amount in minor units
        currency: Currency code
        status: PaymentIntent status
        created: Unix timestamp of creation
        card_last4: Last four digits of the charged card, if any
        card_brand: Card brand of the charged card, if any
        error_code: last_payment_error.code, if any
        error_message: last_payment_error.message, if any
    """

    id: str
    amount: int | None
    currency: str | None
    status: str | None
    created: int | None
    card_last4: str | None = None
    card_brand: str | None = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PaymentIntentPayload:
        charges = _get(_get(data, "charges"), "data") or []
        charge = charges[0] if charges else None
        card = _get(_get(charge, "payment_method_details"), "card")
        error = _get(data, "last_payment_error")
        return cls(
            id=data["id"],
            amount=data.get("amount"),
            currency=data.get("currency"),
            status=data.get("status"),
            created=data.get("created"),
            card_last4=_get(card, "last4"),
            card_brand=_get(card, "brand"),
            error_code=_get(error, "code"),
            error_message=_get(error, "message"),
        )


@dataclass(frozen=True)
class CheckoutSessionPayload:
    """
    The parts of a Stripe Checkout Session the pipeline reads.

    ``metadata`` holds the raw string-encoded entries; decode it with
    ``ticketing.metadata.parse_session_metadata``.
    """

    id: str
    payment_intent: str | None
    amount_total: int | None
    currency: str | None
    payment_status: str | None
    customer_email: str | None
    created: int | None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CheckoutSessionPayload:
        payment_intent = data.get("payment_intent")
        # Expanded sessions carry the whole PaymentIntent object
        if isinstance(payment_intent, Mapping):
            payment_intent = payment_intent.get("id")
        customer_details = data.get("customer_details")
        return cls(
            id=data["id"],
            payment_intent=payment_intent,
            amount_total=data.get("amount_total"),
            currency=data.get("currency"),
            payment_status=data.get("payment_status"),
            customer_email=data.get("customer_email") or _get(customer_details, "email"),
            created=data.get("created"),
            metadata=dict(data.get("metadata") or {}),
        )


# =============================================================================
# Event variants
# =============================================================================


@dataclass(frozen=True)
class InboundEvent:
    """
    Base for all decoded events.

    Attributes:
        event_id: Stripe event ID (evt_xxx)
        kind: Stripe event type string
        created: When Stripe created the event
        raw: The verified event dict, kept for re-decoding from a retry job
    """

    event_id: str
    kind: str
    created: datetime | None
    raw: dict[str, Any] = field(repr=False, compare=False)

    @property
    def payment_intent_id(self) -> str | None:
        return None


@dataclass(frozen=True)
class PaymentSucceededEvent(InboundEvent):
    payment_intent: PaymentIntentPayload

    @property
    def payment_intent_id(self) -> str | None:
        return self.payment_intent.id


@dataclass(frozen=True)
class PaymentFailedEvent(InboundEvent):
    payment_intent: PaymentIntentPayload

    @property
    def payment_intent_id(self) -> str | None:
        return self.payment_intent.id


@dataclass(frozen=True)
class CheckoutCompletedEvent(InboundEvent):
    session: CheckoutSessionPayload

    @property
    def payment_intent_id(self) -> str | None:
        return self.session.payment_intent


@dataclass(frozen=True)
class AsyncPaymentFailedEvent(InboundEvent):
    session: CheckoutSessionPayload

    @property
    def payment_intent_id(self) -> str | None:
        return self.session.payment_intent


@dataclass(frozen=True)
class UnknownEvent(InboundEvent):
    pass


DecodedEvent = Union[
    PaymentSucceededEvent,
    CheckoutCompletedEvent,
    PaymentFailedEvent,
    AsyncPaymentFailedEvent,
    UnknownEvent,
]


_PAYMENT_INTENT_EVENTS = {
    EventKind.PAYMENT_SUCCEEDED: PaymentSucceededEvent,
    EventKind.PAYMENT_FAILED: PaymentFailedEvent,
}

_CHECKOUT_SESSION_EVENTS = {
    EventKind.CHECKOUT_COMPLETED: CheckoutCompletedEvent,
    EventKind.ASYNC_PAYMENT_FAILED: AsyncPaymentFailedEvent,
}


def decode_event(data: Mapping[str, Any]) -> DecodedEvent:
    """
    Decode a verified Stripe event dict into its typed variant.

    Args:
        data: Event dict with ``id``, ``type``, ``created`` and
            ``data.object``

    Returns:
        The matching event variant, or UnknownEvent for unhandled types

    Raises:
        KeyError: The event object lacks an ``id``
    """
    kind = data.get("type", "")
    common = {
        "event_id": data.get("id", ""),
        "kind": kind,
        "created": timestamp_to_datetime(data.get("created")),
        "raw": dict(data),
    }
    obj = (data.get("data") or {}).get("object") or {}

    if kind in _PAYMENT_INTENT_EVENTS:
        return _PAYMENT_INTENT_EVENTS[kind](
            **common, payment_intent=PaymentIntentPayload.from_dict(obj)
        )

    if kind in _CHECKOUT_SESSION_EVENTS:
        return _CHECKOUT_SESSION_EVENTS[kind](
            **common, session=CheckoutSessionPayload.from_dict(obj)
        )

    return UnknownEvent(**common)


__all__ = [
    "AsyncPaymentFailedEvent",
    "CheckoutCompletedEvent",
    "CheckoutSessionPayload",
    "DecodedEvent",
    "EventKind",
    "InboundEvent",
    "PaymentFailedEvent",
    "PaymentIntentPayload",
    "PaymentSucceededEvent",
    "UnknownEvent",
    "decode_event",
]
