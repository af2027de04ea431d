"""
Type definitions for ticketing transaction records.

Provides dataclasses for the records the ingestion pipeline builds and
persists. Stored documents use camelCase keys, JSON numbers for amounts
and ISO-8601 UTC strings for timestamps; ``to_document()`` and
``from_document()`` convert between the two shapes.

Usage:
    from ticketing.types import TransactionRecord

    record = TransactionMaterializer().materialize(event)
    store.create("payments", record.transaction_id, record.to_document())

    # Rebuild from a retry snapshot
    record = TransactionRecord.from_document(job.payload["transactionData"])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from ticketing.state_machines import (
    RecordOrigin,
    RefundStatus,
    TransactionStatus,
)

# =============================================================================
# Conversion helpers
# =============================================================================

TWO_PLACES = Decimal("0.01")


def minor_to_major(amount: int | None) -> Decimal | None:
    """
    Convert a provider amount in minor units to a major-unit Decimal.

    Args:
        amount: Integer amount in the smallest currency unit (e.g. pence)

    Returns:
        Decimal rounded to two places, or None if amount is None

    Example:
        minor_to_major(5000)  # Decimal("50.00")
    """
    if amount is None:
        return None
    return (Decimal(amount) / Decimal(100)).quantize(TWO_PLACES)


def timestamp_to_datetime(value: int | float | None) -> datetime | None:
    """Convert a Unix timestamp (seconds) to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _amount_to_json(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value)


def _amount_from_json(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(TWO_PLACES)


# =============================================================================
# Session metadata records
# =============================================================================


@dataclass
class UserRecord:
    """
    Purchaser and event details embedded in the checkout session metadata.

    Every field was required when the checkout was created, but any of
    them may be missing when read back from metadata.
    """

    uid: str | None = None
    email: str | None = None
    name: str | None = None
    event_id: str | None = None
    event_title: str | None = None
    event_date: str | None = None
    event_time: str | None = None
    event_location: str | None = None
    event_image: str | None = None
    refunds: Any = None

    FIELD_MAP = {
        "uid": "uid",
        "email": "email",
        "name": "name",
        "event_id": "eventId",
        "event_title": "eventTitle",
        "event_date": "eventDate",
        "event_time": "eventTime",
        "event_location": "eventLocation",
        "event_image": "eventImage",
        "refunds": "refunds",
    }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserRecord:
        return cls(**{attr: data.get(key) for attr, key in cls.FIELD_MAP.items()})

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, attr) for attr, key in self.FIELD_MAP.items()}

    @property
    def is_empty(self) -> bool:
        """True when no field carries a value."""
        return all(getattr(self, attr) in (None, "") for attr in self.FIELD_MAP)


@dataclass
class OrganizerRecord:
    """Organizer reference embedded in the checkout session metadata."""

    organizer_id: str | None = None
    organizer: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrganizerRecord:
        return cls(
            organizer_id=data.get("organizerId"),
            organizer=data.get("organizer"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"organizerId": self.organizer_id, "organizer": self.organizer}


@dataclass
class Ticket:
    """
    One ticket line from the checkout.

    ``generated_id`` is assigned once, when the transaction is
    materialized, and never reassigned afterwards. Keys the metadata
    carries beyond the known fields are kept in ``extra`` and written
    back unchanged.
    """

    title: str | None = None
    price: Any = None
    booking_fee: Any = None
    quantity: Any = None
    generated_id: str | None = None
    status: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = ("title", "price", "bookingFee", "quantity", "generatedId", "status")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Ticket:
        return cls(
            title=data.get("title"),
            price=data.get("price"),
            booking_fee=data.get("bookingFee"),
            quantity=data.get("quantity"),
            generated_id=data.get("generatedId"),
            status=data.get("status"),
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "title": self.title,
                "price": self.price,
                "bookingFee": self.booking_fee,
                "quantity": self.quantity,
            }
        )
        if self.generated_id is not None:
            data["generatedId"] = self.generated_id
        if self.status is not None:
            data["status"] = self.status
        return data


@dataclass
class SessionMetadata:
    """
    Decoded checkout session metadata.

    Each field degrades independently to its empty default when the
    corresponding metadata entry is missing or malformed.
    """

    user: UserRecord = field(default_factory=UserRecord)
    tickets: list[Ticket] = field(default_factory=list)
    organizer: OrganizerRecord = field(default_factory=OrganizerRecord)


# =============================================================================
# Transaction record
# =============================================================================


@dataclass
class PaymentMethodSummary:
    """Masked card details; empty strings when the charge carried none."""

    last4: str = ""
    brand: str = ""


@dataclass
class RefundDetails:
    status: str = RefundStatus.NOT_REFUNDED
    amount: Decimal | None = None
    date: datetime | None = None


@dataclass
class PaymentDetails:
    """
    Payment sub-object, owned by payment_intent.succeeded events.

    Attributes:
        amount: Major-unit amount (converted once from minor units)
        currency: ISO 4217 code as sent by the provider (e.g. 'gbp')
        status: Provider payment intent status
        created: When the payment intent was created
        payment_method: Masked card details
        refund: Refund placeholder, not_refunded until a refund happens
    """

    amount: Decimal | None
    currency: str | None
    status: str | None
    created: datetime | None
    payment_method: PaymentMethodSummary = field(default_factory=PaymentMethodSummary)
    refund: RefundDetails = field(default_factory=RefundDetails)

    def to_document(self) -> dict[str, Any]:
        return {
            "amount": _amount_to_json(self.amount),
            "currency": self.currency,
            "status": self.status,
            "created": format_datetime(self.created),
            "paymentMethod": {
                "last4": self.payment_method.last4,
                "brand": self.payment_method.brand,
            },
            "refund": {
                "status": str(self.refund.status),
                "amount": _amount_to_json(self.refund.amount),
                "date": format_datetime(self.refund.date),
            },
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> PaymentDetails:
        method = data.get("paymentMethod") or {}
        refund = data.get("refund") or {}
        return cls(
            amount=_amount_from_json(data.get("amount")),
            currency=data.get("currency"),
            status=data.get("status"),
            created=parse_datetime(data.get("created")),
            payment_method=PaymentMethodSummary(
                last4=method.get("last4", ""),
                brand=method.get("brand", ""),
            ),
            refund=RefundDetails(
                status=refund.get("status", RefundStatus.NOT_REFUNDED),
                amount=_amount_from_json(refund.get("amount")),
                date=parse_datetime(refund.get("date")),
            ),
        )


@dataclass
class CheckoutDetails:
    """Checkout sub-object, owned by checkout.session.completed events."""

    amount_total: Decimal | None
    currency: str | None
    status: str | None
    customer_email: str | None
    customer_id: str
    customer_name: str
    created: datetime | None

    def to_document(self) -> dict[str, Any]:
        return {
            "amountTotal": _amount_to_json(self.amount_total),
            "currency": self.currency,
            "status": self.status,
            "customerEmail": self.customer_email,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "created": format_datetime(self.created),
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> CheckoutDetails:
        return cls(
            amount_total=_amount_from_json(data.get("amountTotal")),
            currency=data.get("currency"),
            status=data.get("status"),
            customer_email=data.get("customerEmail"),
            customer_id=data.get("customerId", ""),
            customer_name=data.get("customerName", ""),
            created=parse_datetime(data.get("created")),
        )


@dataclass
class EventDetails:
    event_id: str | None = None
    event_title: str | None = None
    event_location: str | None = None
    event_date: str | None = None
    event_time: str | None = None
    event_image: str | None = None
    refunds: Any = None

    def to_document(self) -> dict[str, Any]:
        return {
            "eventId": self.event_id,
            "eventTitle": self.event_title,
            "eventLocation": self.event_location,
            "eventDate": self.event_date,
            "eventTime": self.event_time,
            "eventImage": self.event_image,
            "refunds": self.refunds,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> EventDetails:
        return cls(
            event_id=data.get("eventId"),
            event_title=data.get("eventTitle"),
            event_location=data.get("eventLocation"),
            event_date=data.get("eventDate"),
            event_time=data.get("eventTime"),
            event_image=data.get("eventImage"),
            refunds=data.get("refunds"),
        )


@dataclass
class OrganizerDetails:
    organizer_id: str = ""
    organizer_name: str = ""


@dataclass
class TransactionRecord:
    """
    Canonical persisted transaction, keyed by the payment intent id.

    Records built from a payment event carry ``payment`` and
    ``checkout``; records built from a bare checkout event carry only
    ``checkout``. ``origin`` decides which sub-object the record owns when
    it is merged into an existing document and whether a schedule entry
    is written.
    """

    transaction_id: str
    session_id: str | None
    user_id: str | None
    checkout: CheckoutDetails
    event_details: EventDetails
    tickets: list[Ticket]
    organizer_details: OrganizerDetails
    qr_code_url: str
    terms_version: str
    origin: str = RecordOrigin.PAYMENT
    payment: PaymentDetails | None = None
    status: str = TransactionStatus.SUCCEEDED
    verified: bool = False

    def to_document(self) -> dict[str, Any]:
        """
        Return the JSON-serializable stored shape.

        The payment sub-object is omitted entirely when the record has
        none, so merging a checkout record never blanks it.
        """
        document: dict[str, Any] = {
            "transactionId": self.transaction_id,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "checkout": self.checkout.to_document(),
            "qrCodeUrl": self.qr_code_url,
            "eventDetails": self.event_details.to_document(),
            "tickets": [ticket.to_dict() for ticket in self.tickets],
            "organizerDetails": {
                "organizerId": self.organizer_details.organizer_id,
                "organizerName": self.organizer_details.organizer_name,
            },
            "status": str(self.status),
            "verified": self.verified,
            "termsVersion": self.terms_version,
            "origin": str(self.origin),
        }
        if self.payment is not None:
            document["payment"] = self.payment.to_document()
        return document

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> TransactionRecord:
        """Rebuild a record from a stored document or a retry snapshot."""
        organizer = data.get("organizerDetails") or {}
        payment = data.get("payment")
        return cls(
            transaction_id=data["transactionId"],
            session_id=data.get("sessionId"),
            user_id=data.get("userId"),
            payment=PaymentDetails.from_document(payment) if payment else None,
            checkout=CheckoutDetails.from_document(data.get("checkout") or {}),
            qr_code_url=data.get("qrCodeUrl", ""),
            event_details=EventDetails.from_document(data.get("eventDetails") or {}),
            tickets=[Ticket.from_dict(t) for t in data.get("tickets") or []],
            organizer_details=OrganizerDetails(
                organizer_id=organizer.get("organizerId", ""),
                organizer_name=organizer.get("organizerName", ""),
            ),
            status=data.get("status", TransactionStatus.SUCCEEDED),
            verified=bool(data.get("verified", False)),
            terms_version=data.get("termsVersion", ""),
            origin=data.get("origin", RecordOrigin.PAYMENT),
        )

    @property
    def is_payment(self) -> bool:
        return self.origin == RecordOrigin.PAYMENT


@dataclass
class ScheduleEntry:
    """
    Display-only side record for a user's upcoming events.

    Written only for records that originate from a payment event, keyed
    by the transaction id.
    """

    name: str | None
    event_id: str | None
    date: str | None
    time: str | None
    location: str | None
    image: str | None
    user_id: str | None
    link: str

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "eventId": self.event_id,
            "date": self.date,
            "time": self.time,
            "location": self.location,
            "image": self.image,
            "userId": self.user_id,
            "link": self.link,
        }


@dataclass
class FailurePatch:
    """
    Patch applied to an existing record when a payment fails.

    Only ``status`` and ``failure`` are written; every other field of the
    stored record is left as it was.
    """

    error_code: str
    error_message: str
    timestamp: datetime

    def to_document(self) -> dict[str, Any]:
        return {
            "status": str(TransactionStatus.FAILED),
            "failure": {
                "errorCode": self.error_code,
                "errorMessage": self.error_message,
                "timestamp": format_datetime(self.timestamp),
            },
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> FailurePatch:
        failure = data.get("failure") or {}
        return cls(
            error_code=failure.get("errorCode", ""),
            error_message=failure.get("errorMessage", ""),
            timestamp=parse_datetime(failure.get("timestamp")),
        )


__all__ = [
    "CheckoutDetails",
    "EventDetails",
    "FailurePatch",
    "OrganizerDetails",
    "OrganizerRecord",
    "PaymentDetails",
    "PaymentMethodSummary",
    "RefundDetails",
    "ScheduleEntry",
    "SessionMetadata",
    "Ticket",
    "TransactionRecord",
    "UserRecord",
    "format_datetime",
    "minor_to_major",
    "parse_datetime",
    "timestamp_to_datetime",
]
