"""
Durable retry queue for ticketing ingestion.

Work that fails after a webhook has been acknowledged is persisted as a
RetryJob row and handed to Celery by id. The row is the source of truth:
if the broker is unavailable the job still exists and the periodic
``requeue_retry_jobs`` task dispatches it later.

Job Names:
    save_transaction - Re-commit a materialized TransactionRecord snapshot
    apply_failure    - Re-apply a FailurePatch
    reprocess_event  - Re-run a webhook event from its verified payload

Usage:
    from ticketing.queue import SAVE_TRANSACTION, TransactionRetryQueue, register_consumer

    @register_consumer(SAVE_TRANSACTION)
    def save_transaction(payload, context):
        ...

    TransactionRetryQueue().enqueue(SAVE_TRANSACTION, {"paymentIntentId": "pi_123", ...})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from core.services import BaseService

from ticketing.models import RetryJob

if TYPE_CHECKING:
    from ticketing.context import IngestionContext


logger = logging.getLogger(__name__)


# =============================================================================
# Job Names
# =============================================================================

SAVE_TRANSACTION = "save_transaction"
APPLY_FAILURE = "apply_failure"
REPROCESS_EVENT = "reprocess_event"


# =============================================================================
# Consumer Registry
# =============================================================================

Consumer = Callable[[dict[str, Any], "IngestionContext"], None]

# Maps job names to consumer functions
RETRY_CONSUMERS: dict[str, Consumer] = {}


def register_consumer(name: str) -> Callable:
    """
    Decorator to register the consumer for a job name.

    A consumer receives the job payload and an IngestionContext. Returning
    normally marks the job done; raising marks the attempt failed.

    Usage:
        @register_consumer("save_transaction")
        def save_transaction(payload: dict, context: IngestionContext) -> None:
            ...

    Args:
        name: Job name

    Returns:
        Decorator function that registers the consumer
    """

    def decorator(func: Consumer) -> Consumer:
        RETRY_CONSUMERS[name] = func
        logger.debug(f"Registered retry consumer for {name}")
        return func

    return decorator


def get_consumer(name: str) -> Consumer | None:
    return RETRY_CONSUMERS.get(name)


# =============================================================================
# Queue
# =============================================================================


class TransactionRetryQueue(BaseService):
    """
    RetryQueue implementation backed by RetryJob rows and Celery.

    Usage:
        queue = TransactionRetryQueue()
        job = queue.enqueue("apply_failure", {"paymentIntentId": "pi_123", "patch": {...}})
    """

    def enqueue(self, name: str, payload: dict[str, Any]) -> RetryJob:
        """
        Persist a job and schedule it for processing.

        Args:
            name: Registered consumer name
            payload: JSON-serializable payload; ``paymentIntentId`` is
                copied onto the job for lookup

        Returns:
            The created RetryJob
        """
        from ticketing.tasks import process_retry_job

        logger = self.get_logger()

        job = RetryJob.objects.create(
            name=name,
            payment_intent_id=payload.get("paymentIntentId") or "",
            payload=payload,
        )

        log_context = {
            "retry_job_id": str(job.id),
            "job_name": name,
            "payment_intent_id": job.payment_intent_id,
        }
        logger.info("Enqueued retry job", extra=log_context)

        try:
            process_retry_job.delay(str(job.id))
        except Exception as e:
            # Row is persisted; requeue_retry_jobs will dispatch it later
            logger.error(
                f"Failed to dispatch retry job to broker: {e}",
                extra=log_context,
            )

        return job
