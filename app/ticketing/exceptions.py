"""
Ticketing-specific exceptions for webhook ingestion.

Every failure the ingestion pipeline can raise is classified as retryable
or not. The webhook router and the retry worker branch on ``is_retryable``
instead of catching a generic error and re-queueing unconditionally.

Exception Hierarchy:
    TicketingError (base for the ticketing domain)
    ├── InvalidSignature - Webhook signature rejected (fatal, reject request)
    ├── IncompleteBookingData - Session metadata lacks user/tickets (permanent)
    ├── SessionNotFound - No checkout session for the intent (transient, retry)
    ├── QrEncodingFailed - QR collaborator failed (transient, retry)
    └── CommitFailed - Atomic multi-collection write failed (transient, retry)

Usage:
    from ticketing.exceptions import CommitFailed, TicketingError

    try:
        writer.commit(record, mirror_key=record.session_id)
    except CommitFailed as e:
        queue.enqueue("save_transaction", {...})
    except TicketingError as e:
        if not e.is_retryable:
            logger.error(f"Dropping event: {e}")
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError


class TicketingError(BaseApplicationError):
    """
    Base exception for all ticketing ingestion errors.

    Subclasses set ``is_retryable`` to tell the router and the retry
    worker whether repeating the operation with the same input can help.
    """

    default_error_code: str = "TICKETING_ERROR"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class InvalidSignature(TicketingError):
    """
    Webhook signature verification failed.

    Raised when the Stripe-Signature header does not match the raw body,
    is malformed, is outside the timestamp tolerance, or when no signing
    secret is configured. The request must be rejected with a client error
    and its payload never processed.
    """

    default_error_code: str = "INVALID_SIGNATURE"
    is_retryable: bool = False


class IncompleteBookingData(TicketingError):
    """
    Checkout session metadata has no usable user record or ticket list.

    This points at a malformed upstream checkout, not a transient fault.
    Retrying with the same session can never succeed, so the event is
    logged and dropped.

    Example:
        raise IncompleteBookingData(
            "Session metadata is missing tickets",
            details={"payment_intent_id": "pi_123", "missing": ["tickets"]},
        )
    """

    default_error_code: str = "INCOMPLETE_BOOKING_DATA"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry)
# -----------------------------------------------------------------------------


class SessionNotFound(TicketingError):
    """
    No checkout session could be resolved for a payment intent.

    Stripe occasionally delivers payment_intent.succeeded before the
    session listing reflects the intent, and the lookup itself can time
    out. Both cases are retried through the retry queue.
    """

    default_error_code: str = "SESSION_NOT_FOUND"
    is_retryable: bool = True


class QrEncodingFailed(TicketingError):
    """
    The QR-encoding collaborator failed to produce a payload.
    """

    default_error_code: str = "QR_ENCODING_FAILED"
    is_retryable: bool = True


class CommitFailed(TicketingError):
    """
    The atomic write across primary, mirror and schedule collections failed.

    The store transaction has been rolled back, so none of the documents
    changed. The caller queues the full record snapshot for another
    attempt.
    """

    default_error_code: str = "COMMIT_FAILED"
    is_retryable: bool = True


__all__ = [
    "TicketingError",
    "InvalidSignature",
    "IncompleteBookingData",
    "SessionNotFound",
    "QrEncodingFailed",
    "CommitFailed",
]
