"""
Celery tasks for the ticketing retry queue.

This module provides async tasks for:
- Processing a single RetryJob
- Re-dispatching jobs whose broker message was lost
- Resetting jobs stuck in processing after a worker crash

Usage:
    from ticketing.tasks import process_retry_job

    # Normally called by TransactionRetryQueue.enqueue
    process_retry_job.delay(str(job.id))

    # Periodic tasks (scheduled via celery-beat)
    from ticketing.tasks import requeue_retry_jobs
    requeue_retry_jobs.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.exceptions import BaseApplicationError

from ticketing.adapters import backoff_delay
from ticketing.context import IngestionContext
from ticketing.models import RetryJob
from ticketing.queue import get_consumer
from ticketing.state_machines import RetryJobStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_BACKOFF_MAX_SECONDS = 3600
REQUEUE_THRESHOLD_MINUTES = 15
STUCK_PROCESSING_THRESHOLD_MINUTES = 30
REQUEUE_BATCH_SIZE = 100


def _max_attempts() -> int:
    return getattr(settings, "RETRY_QUEUE_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)


def _is_retryable(error: Exception) -> bool:
    """Application errors carry their own flag; anything else is retried."""
    if isinstance(error, BaseApplicationError):
        return error.is_retryable
    return True


# =============================================================================
# Retry Job Processing
# =============================================================================


@shared_task(
    bind=True,
    max_retries=None,
    acks_late=True,
)
def process_retry_job(self, retry_job_id: str) -> dict:
    """
    Run one attempt of a RetryJob.

    This task:
    1. Loads the RetryJob and marks it processing (attempts += 1)
    2. Invokes the consumer registered for the job name
    3. Deletes the job on success
    4. On failure, dead-letters the job when attempts are exhausted or
       the error is not retryable, otherwise schedules another attempt
       with exponential backoff

    Args:
        retry_job_id: UUID of the RetryJob to process

    Returns:
        Dict with processing result status

    Raises:
        Exception: Re-raised through self.retry to schedule the next attempt
    """
    if isinstance(retry_job_id, str):
        retry_job_id = UUID(retry_job_id)

    log_context = {"retry_job_id": str(retry_job_id)}

    with transaction.atomic():
        job = RetryJob.objects.select_for_update().filter(id=retry_job_id).first()
        if job is None:
            logger.info("RetryJob not found, already completed", extra=log_context)
            return {"status": "not_found", "retry_job_id": str(retry_job_id)}

        if job.status not in (RetryJobStatus.PENDING, RetryJobStatus.FAILED):
            logger.info(
                f"RetryJob is {job.status}, skipping",
                extra={**log_context, "status": job.status},
            )
            return {"status": "skipped", "retry_job_id": str(retry_job_id)}

        job.start_attempt()
        job.save()

    log_context.update(
        {
            "job_name": job.name,
            "payment_intent_id": job.payment_intent_id,
            "attempts": job.attempts,
        }
    )

    consumer = get_consumer(job.name)
    if consumer is None:
        job.dead_letter(f"No consumer registered for '{job.name}'")
        job.save()
        logger.error("No consumer registered for retry job", extra=log_context)
        return {"status": "dead_lettered", "retry_job_id": str(retry_job_id)}

    logger.info("Processing retry job", extra=log_context)

    try:
        consumer(job.payload, IngestionContext.default())
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"

        if not _is_retryable(e) or job.attempts >= _max_attempts():
            job.dead_letter(error_msg)
            job.save()
            logger.error(
                "Retry job dead-lettered",
                extra={**log_context, "error": error_msg},
            )
            return {"status": "dead_lettered", "retry_job_id": str(retry_job_id)}

        job.fail(error_msg)
        job.save()

        countdown = backoff_delay(
            job.attempts - 1,
            max_delay=getattr(
                settings, "RETRY_QUEUE_BACKOFF_MAX_SECONDS", DEFAULT_BACKOFF_MAX_SECONDS
            ),
        )
        logger.warning(
            f"Retry job failed, next attempt in {countdown:.1f}s",
            extra={**log_context, "error": error_msg, "countdown": countdown},
        )
        raise self.retry(exc=e, countdown=countdown)

    job.delete()
    logger.info("Retry job completed", extra=log_context)
    return {"status": "completed", "retry_job_id": str(retry_job_id)}


# =============================================================================
# Periodic Maintenance
# =============================================================================


@shared_task
def requeue_retry_jobs() -> dict:
    """
    Periodic task to re-dispatch retry jobs that are not in flight.

    Picks up pending jobs whose broker message never arrived and failed
    jobs whose scheduled retry was lost (e.g. the broker restarted).

    Returns:
        Dict with count of jobs queued
    """
    threshold = timezone.now() - timedelta(minutes=REQUEUE_THRESHOLD_MINUTES)

    jobs = RetryJob.objects.filter(
        status__in=[RetryJobStatus.PENDING, RetryJobStatus.FAILED],
        updated_at__lt=threshold,
    ).order_by("created_at")[:REQUEUE_BATCH_SIZE]

    queued_count = 0
    for job in jobs:
        try:
            process_retry_job.delay(str(job.id))
            queued_count += 1
            logger.info(
                "Re-dispatched retry job",
                extra={
                    "retry_job_id": str(job.id),
                    "job_name": job.name,
                    "attempts": job.attempts,
                },
            )
        except Exception as e:
            logger.error(
                f"Failed to re-dispatch retry job: {e}",
                extra={"retry_job_id": str(job.id)},
            )

    logger.info(
        f"Re-dispatched {queued_count} retry jobs",
        extra={"queued_count": queued_count},
    )

    return {"queued_count": queued_count}


@shared_task
def reset_stuck_retry_jobs() -> dict:
    """
    Periodic task to reset retry jobs stuck in processing.

    A worker that crashed mid-attempt leaves its job in PROCESSING. Such
    jobs are moved to FAILED so requeue_retry_jobs picks them up, or
    dead-lettered when they have no attempts left.

    Returns:
        Dict with count of jobs reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    max_attempts = _max_attempts()

    stuck_jobs = RetryJob.objects.filter(
        status=RetryJobStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for job in stuck_jobs:
        stuck_since = job.updated_at
        if job.attempts >= max_attempts:
            job.dead_letter("Processing timed out - no attempts left")
        else:
            job.fail("Processing timed out - reset for retry")
        job.save()
        reset_count += 1
        logger.warning(
            "Reset stuck retry job",
            extra={
                "retry_job_id": str(job.id),
                "status": job.status,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    if reset_count > 0:
        logger.info(
            f"Reset {reset_count} stuck retry jobs",
            extra={"reset_count": reset_count},
        )

    return {"reset_count": reset_count}
