"""
Transaction materializer for ticket purchase events.

This module turns a payment-success or checkout-completion event, plus
the checkout session and its decoded metadata, into the canonical
TransactionRecord that the DurableWriter persists.

The materializer:
1. Resolves the checkout session (looked up by payment intent for
   payment events, carried in the payload for checkout events)
2. Decodes the session metadata
3. Rejects bookings without a user or tickets (not retryable)
4. Encodes the QR payload through the injected QrEncoder
5. Assigns a fresh collision-resistant id and 'valid' status per ticket
6. Builds the record with a not_refunded placeholder and verified=False

Minor currency units are converted to major units here and nowhere else.

Usage:
    from ticketing.services import TransactionMaterializer

    materializer = TransactionMaterializer()
    record = materializer.materialize(event)
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable
from datetime import datetime

from django.conf import settings
from django.utils import timezone

from core.services import BaseService

from ticketing.adapters import StripeAdapter
from ticketing.events import (
    AsyncPaymentFailedEvent,
    CheckoutCompletedEvent,
    CheckoutSessionPayload,
    PaymentFailedEvent,
    PaymentSucceededEvent,
)
from ticketing.exceptions import IncompleteBookingData, QrEncodingFailed
from ticketing.metadata import parse_session_metadata
from ticketing.protocols import QrEncoder
from ticketing.services.qr import DataUrlQrEncoder
from ticketing.state_machines import RecordOrigin, TicketStatus, TransactionStatus
from ticketing.types import (
    CheckoutDetails,
    EventDetails,
    FailurePatch,
    OrganizerDetails,
    PaymentDetails,
    PaymentMethodSummary,
    RefundDetails,
    ScheduleEntry,
    SessionMetadata,
    Ticket,
    TransactionRecord,
    minor_to_major,
    timestamp_to_datetime,
)

# =============================================================================
# Constants
# =============================================================================

TICKET_ID_PREFIX = "tkt_"

# Hex characters kept from the SHA-256 digest (80 bits)
TICKET_ID_LENGTH = 20

ASYNC_FAILURE_CODE = "async_payment_failed"
ASYNC_FAILURE_MESSAGE = "Asynchronous payment failed"
UNKNOWN_FAILURE_CODE = "unknown_error"
UNKNOWN_FAILURE_MESSAGE = "Unknown error occurred"


# =============================================================================
# Helpers
# =============================================================================


def generate_ticket_ids(transaction_id: str, count: int) -> list[str]:
    """
    Generate ``count`` ticket ids for one materialization.

    Each id is a SHA-256 digest over the transaction id, the ticket's
    position and a salt drawn once per call, so ids are distinct within
    the call and unpredictable across calls.

    Example:
        generate_ticket_ids("pi_123", 2)
        # ['tkt_3f9a...', 'tkt_b41c...']
    """
    salt = secrets.token_hex(16)
    ids = []
    for index in range(count):
        digest = hashlib.sha256(f"{transaction_id}:{index}:{salt}".encode()).hexdigest()
        ids.append(f"{TICKET_ID_PREFIX}{digest[:TICKET_ID_LENGTH]}")
    return ids


def build_schedule_entry(record: TransactionRecord, link_base_url: str) -> ScheduleEntry:
    """
    Derive the schedule entry for a payment-originated record.

    Args:
        record: The transaction record
        link_base_url: Base of the deep link; the transaction id is appended

    Returns:
        ScheduleEntry keyed (by the caller) on the transaction id
    """
    details = record.event_details
    return ScheduleEntry(
        name=details.event_title,
        event_id=details.event_id,
        date=details.event_date,
        time=details.event_time,
        location=details.event_location,
        image=details.event_image,
        user_id=record.user_id,
        link=f"{link_base_url.rstrip('/')}/{record.transaction_id}",
    )


def build_failure_patch(
    event: PaymentFailedEvent | AsyncPaymentFailedEvent,
    now: datetime | None = None,
) -> FailurePatch:
    """
    Build the failure patch for a failed payment event.

    payment_intent.payment_failed carries the provider's error code and
    message; checkout.session.async_payment_failed carries none, so a
    fixed code is used.

    Args:
        event: The failure event
        now: Failure timestamp (default: current time)

    Returns:
        FailurePatch to merge onto the stored record
    """
    timestamp = now or timezone.now()

    if isinstance(event, AsyncPaymentFailedEvent):
        return FailurePatch(
            error_code=ASYNC_FAILURE_CODE,
            error_message=ASYNC_FAILURE_MESSAGE,
            timestamp=timestamp,
        )

    return FailurePatch(
        error_code=event.payment_intent.error_code or UNKNOWN_FAILURE_CODE,
        error_message=event.payment_intent.error_message or UNKNOWN_FAILURE_MESSAGE,
        timestamp=timestamp,
    )


# =============================================================================
# Materializer
# =============================================================================


class TransactionMaterializer(BaseService):
    """
    Builds TransactionRecords from purchase events.

    Collaborators are injected; the defaults look sessions up through
    StripeAdapter and encode QR payloads as PNG data URLs.

    Args:
        session_lookup: Callable resolving a payment intent id to its
            checkout session; raises SessionNotFound when there is none
        qr_encoder: QrEncoder implementation
        terms_version: Terms version stamped on new records
    """

    def __init__(
        self,
        session_lookup: Callable[[str], CheckoutSessionPayload] | None = None,
        qr_encoder: QrEncoder | None = None,
        terms_version: str | None = None,
    ):
        self.session_lookup = session_lookup or StripeAdapter.find_checkout_session
        self.qr_encoder = qr_encoder or DataUrlQrEncoder()
        self.terms_version = terms_version or getattr(
            settings, "TICKETING_TERMS_VERSION", "v1.0"
        )

    def materialize(
        self,
        event: PaymentSucceededEvent | CheckoutCompletedEvent,
    ) -> TransactionRecord:
        """
        Build the TransactionRecord for a purchase event.

        Args:
            event: payment_intent.succeeded or checkout.session.completed

        Returns:
            The materialized TransactionRecord (not yet persisted)

        Raises:
            SessionNotFound: No checkout session for the payment intent (retryable)
            IncompleteBookingData: No user, tickets or payment intent (not retryable)
            QrEncodingFailed: The QR encoder failed (retryable)
        """
        logger = self.get_logger()

        if isinstance(event, PaymentSucceededEvent):
            transaction_id = event.payment_intent.id
            session = self.session_lookup(transaction_id)
            origin = RecordOrigin.PAYMENT
        else:
            session = event.session
            transaction_id = session.payment_intent
            origin = RecordOrigin.CHECKOUT
            if not transaction_id:
                raise IncompleteBookingData(
                    f"Checkout session {session.id} has no payment intent",
                    details={"session_id": session.id, "event_id": event.event_id},
                )

        log_context = {
            "payment_intent_id": transaction_id,
            "session_id": session.id,
            "event_type": event.kind,
        }
        logger.info("Materializing transaction", extra=log_context)

        metadata = parse_session_metadata(session.metadata)
        self._check_complete(metadata, transaction_id, session.id)

        qr_code_url = self._encode_qr(transaction_id, metadata)
        tickets = self._issue_tickets(transaction_id, metadata.tickets)

        user = metadata.user
        record = TransactionRecord(
            transaction_id=transaction_id,
            session_id=session.id,
            user_id=user.uid,
            payment=(
                self._payment_details(event) if origin == RecordOrigin.PAYMENT else None
            ),
            checkout=CheckoutDetails(
                amount_total=minor_to_major(session.amount_total),
                currency=session.currency,
                status=session.payment_status,
                customer_email=session.customer_email,
                customer_id=user.uid or "",
                customer_name=user.name or "",
                created=timestamp_to_datetime(session.created),
            ),
            qr_code_url=qr_code_url,
            event_details=EventDetails(
                event_id=user.event_id,
                event_title=user.event_title,
                event_location=user.event_location,
                event_date=user.event_date,
                event_time=user.event_time,
                event_image=user.event_image,
                refunds=user.refunds,
            ),
            tickets=tickets,
            organizer_details=OrganizerDetails(
                organizer_id=metadata.organizer.organizer_id or "",
                organizer_name=metadata.organizer.organizer or "",
            ),
            status=TransactionStatus.SUCCEEDED,
            verified=False,
            terms_version=self.terms_version,
            origin=origin,
        )

        logger.info(
            f"Materialized transaction with {len(tickets)} tickets",
            extra={**log_context, "ticket_count": len(tickets)},
        )
        return record

    # =========================================================================
    # Steps
    # =========================================================================

    @staticmethod
    def _check_complete(
        metadata: SessionMetadata,
        transaction_id: str,
        session_id: str,
    ) -> None:
        missing = []
        if metadata.user.is_empty:
            missing.append("user")
        if not metadata.tickets:
            missing.append("tickets")
        if missing:
            raise IncompleteBookingData(
                f"Session metadata is missing {', '.join(missing)}",
                details={
                    "payment_intent_id": transaction_id,
                    "session_id": session_id,
                    "missing": missing,
                },
            )

    def _encode_qr(self, transaction_id: str, metadata: SessionMetadata) -> str:
        qr_data = {
            "id": transaction_id,
            "user": metadata.user.uid,
            "tickets": [ticket.to_dict() for ticket in metadata.tickets],
        }
        try:
            return self.qr_encoder.encode(qr_data)
        except Exception as e:
            self.get_logger().error(
                f"QR encoding failed: {e}",
                extra={"payment_intent_id": transaction_id},
                exc_info=True,
            )
            raise QrEncodingFailed(
                "Failed to generate QR code",
                details={"payment_intent_id": transaction_id, "error": str(e)},
            ) from e

    @staticmethod
    def _issue_tickets(transaction_id: str, tickets: list[Ticket]) -> list[Ticket]:
        ids = generate_ticket_ids(transaction_id, len(tickets))
        return [
            Ticket(
                title=ticket.title,
                price=ticket.price,
                booking_fee=ticket.booking_fee,
                quantity=ticket.quantity,
                generated_id=ticket_id,
                status=str(TicketStatus.VALID),
                extra=dict(ticket.extra),
            )
            for ticket, ticket_id in zip(tickets, ids)
        ]

    @staticmethod
    def _payment_details(event: PaymentSucceededEvent) -> PaymentDetails:
        intent = event.payment_intent
        return PaymentDetails(
            amount=minor_to_major(intent.amount),
            currency=intent.currency,
            status=intent.status,
            created=timestamp_to_datetime(intent.created),
            payment_method=PaymentMethodSummary(
                last4=intent.card_last4 or "",
                brand=intent.card_brand or "",
            ),
            refund=RefundDetails(),
        )
