"""
Retry queue consumers.

Each consumer repeats one ingestion step from the payload stored on a
RetryJob. Consumers only ever change stored transactions through the
DurableWriter; raising marks the attempt failed.

Payloads:
    save_transaction: {paymentIntentId, mirrorKey, transactionData}
    apply_failure:    {paymentIntentId, mirrorKey, patch}
    reprocess_event:  {paymentIntentId, event}
"""

from __future__ import annotations

import logging
from typing import Any

from ticketing.context import IngestionContext
from ticketing.events import decode_event
from ticketing.queue import APPLY_FAILURE, REPROCESS_EVENT, SAVE_TRANSACTION, register_consumer
from ticketing.types import FailurePatch, TransactionRecord
from ticketing.webhooks.handlers import process_event

logger = logging.getLogger(__name__)


@register_consumer(SAVE_TRANSACTION)
def save_transaction(payload: dict[str, Any], context: IngestionContext) -> None:
    record = TransactionRecord.from_document(payload["transactionData"])
    context.writer.commit(record, mirror_key=payload.get("mirrorKey"))


@register_consumer(APPLY_FAILURE)
def apply_failure(payload: dict[str, Any], context: IngestionContext) -> None:
    context.writer.apply_failure(
        payload["paymentIntentId"],
        FailurePatch.from_document(payload["patch"]),
        mirror_key=payload.get("mirrorKey"),
    )


@register_consumer(REPROCESS_EVENT)
def reprocess_event(payload: dict[str, Any], context: IngestionContext) -> None:
    """
    Run a webhook event through its handler again.

    Handler errors propagate: retryable ones fail the attempt, and an
    incomplete booking dead-letters the job.
    """
    event = decode_event(payload["event"])
    process_event(event, context)
    logger.info(
        "Reprocessed webhook event",
        extra={
            "stripe_event_id": event.event_id,
            "payment_intent_id": event.payment_intent_id,
        },
    )
