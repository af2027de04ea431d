"""
Webhook event handlers for Stripe ticket purchase events.

This module provides a handler registry, the handler implementations and
``dispatch_event``, the single place where the outcome of an event is
classified:

- success                     -> ServiceResult.success
- retryable lookup/QR failure -> reprocess_event job queued, success
- CommitFailed                -> save_transaction/apply_failure job queued, success
- IncompleteBookingData       -> logged and dropped, ServiceResult.failure
- unknown event type          -> logged at WARNING, success
- anything else               -> propagates

Usage:
    from ticketing.webhooks.handlers import dispatch_event, register_handler

    # Register a custom handler
    @register_handler("charge.refunded")
    def handle_charge_refunded(event: InboundEvent, context: IngestionContext) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_event(event, IngestionContext.default())
"""

from __future__ import annotations

import logging
from typing import Callable

from core.protocols import RetryQueue
from core.services import ServiceResult

from ticketing.context import IngestionContext
from ticketing.events import (
    AsyncPaymentFailedEvent,
    CheckoutCompletedEvent,
    EventKind,
    InboundEvent,
    PaymentFailedEvent,
    PaymentSucceededEvent,
)
from ticketing.exceptions import CommitFailed, IncompleteBookingData, TicketingError
from ticketing.queue import APPLY_FAILURE, REPROCESS_EVENT, SAVE_TRANSACTION
from ticketing.services import build_failure_patch
from ticketing.services.writer import APPLY_FAILURE_OPERATION

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================

Handler = Callable[[InboundEvent, IngestionContext], ServiceResult]

# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("payment_intent.succeeded")
        def handle_payment_succeeded(event, context) -> ServiceResult:
            ...

    Args:
        event_type: The Stripe event type (e.g., "payment_intent.succeeded")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Handler) -> Handler:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def process_event(event: InboundEvent, context: IngestionContext) -> ServiceResult:
    """
    Run the registered handler for an event without classifying errors.

    Domain errors propagate to the caller. The retry worker uses this
    directly so a failed reprocess attempt is retried by the queue itself.

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(event.kind)

    if not handler:
        logger.warning(
            f"No handler registered for event type: {event.kind}",
            extra={"stripe_event_id": event.event_id, "event_type": event.kind},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {event.kind} to handler",
        extra={
            "stripe_event_id": event.event_id,
            "payment_intent_id": event.payment_intent_id,
        },
    )
    return handler(event, context)


def dispatch_event(
    event: InboundEvent,
    context: IngestionContext | None = None,
) -> ServiceResult:
    """
    Dispatch an event and route retryable failures to the retry queue.

    Args:
        event: The decoded, verified event
        context: Collaborators (default: IngestionContext.default())

    Returns:
        ServiceResult; queued outcomes are successes with
        ``data["queued"] = True``

    Raises:
        Exception: Anything that is not a TicketingError
    """
    context = context or IngestionContext.default()
    log_context = {
        "stripe_event_id": event.event_id,
        "event_type": event.kind,
        "payment_intent_id": event.payment_intent_id,
    }

    try:
        return process_event(event, context)

    except CommitFailed as e:
        job = _enqueue_commit_retry(e, context.queue)
        logger.warning(
            "Commit failed, queued for retry",
            extra={**log_context, "retry_job_id": str(job.id)},
        )
        return ServiceResult.success({"queued": True, "retry_job_id": str(job.id)})

    except TicketingError as e:
        if e.is_retryable:
            job = context.queue.enqueue(
                REPROCESS_EVENT,
                {"paymentIntentId": event.payment_intent_id, "event": event.raw},
            )
            logger.warning(
                f"Retryable failure, event queued for reprocessing: {e}",
                extra={
                    **log_context,
                    "error_code": e.error_code,
                    "retry_job_id": str(job.id),
                },
            )
            return ServiceResult.success({"queued": True, "retry_job_id": str(job.id)})

        logger.error(
            f"Dropping event: {e}",
            extra={**log_context, "error_code": e.error_code, "details": e.details},
        )
        return ServiceResult.from_exception(e)


def _enqueue_commit_retry(error: CommitFailed, queue: RetryQueue):
    """Queue the snapshot carried by a CommitFailed for another attempt."""
    details = error.details
    payload = {
        "paymentIntentId": details.get("payment_intent_id"),
        "mirrorKey": details.get("mirror_key"),
    }
    if details.get("operation") == APPLY_FAILURE_OPERATION:
        return queue.enqueue(APPLY_FAILURE, {**payload, "patch": details["snapshot"]})
    return queue.enqueue(SAVE_TRANSACTION, {**payload, "transactionData": details["snapshot"]})


# =============================================================================
# Purchase Handlers
# =============================================================================


@register_handler(EventKind.PAYMENT_SUCCEEDED)
def handle_payment_succeeded(
    event: PaymentSucceededEvent,
    context: IngestionContext,
) -> ServiceResult:
    """
    Handle a successful payment.

    Looks up the checkout session, materializes the transaction and
    commits it with its schedule entry.
    """
    record = context.materializer.materialize(event)
    context.writer.commit(record, mirror_key=record.session_id)
    return ServiceResult.success(
        {"queued": False, "payment_intent_id": record.transaction_id}
    )


@register_handler(EventKind.CHECKOUT_COMPLETED)
def handle_checkout_completed(
    event: CheckoutCompletedEvent,
    context: IngestionContext,
) -> ServiceResult:
    """
    Handle a completed checkout session.

    May arrive before payment_intent.succeeded; the writer creates the
    documents without a payment sub-object and no schedule entry.
    """
    record = context.materializer.materialize(event)
    context.writer.commit(record, mirror_key=record.session_id)
    return ServiceResult.success(
        {"queued": False, "payment_intent_id": record.transaction_id}
    )


# =============================================================================
# Failure Handlers
# =============================================================================


@register_handler(EventKind.PAYMENT_FAILED)
def handle_payment_failed(
    event: PaymentFailedEvent,
    context: IngestionContext,
) -> ServiceResult:
    """Record the provider's failure code and message on the transaction."""
    patch = build_failure_patch(event)
    context.writer.apply_failure(event.payment_intent.id, patch)
    return ServiceResult.success(
        {"queued": False, "payment_intent_id": event.payment_intent.id}
    )


@register_handler(EventKind.ASYNC_PAYMENT_FAILED)
def handle_async_payment_failed(
    event: AsyncPaymentFailedEvent,
    context: IngestionContext,
) -> ServiceResult:
    """Record an asynchronous payment failure reported on the checkout session."""
    payment_intent_id = event.session.payment_intent
    if not payment_intent_id:
        raise IncompleteBookingData(
            f"Checkout session {event.session.id} has no payment intent",
            details={"session_id": event.session.id},
        )

    patch = build_failure_patch(event)
    context.writer.apply_failure(payment_intent_id, patch, mirror_key=event.session.id)
    return ServiceResult.success({"queued": False, "payment_intent_id": payment_intent_id})
