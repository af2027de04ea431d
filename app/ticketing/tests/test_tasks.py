"""
Tests for the retry queue and its Celery tasks.

Tests cover:
- TransactionRetryQueue.enqueue
- process_retry_job for each consumer
- Dead-lettering on exhausted attempts and permanent errors
- requeue_retry_jobs and reset_stuck_retry_jobs
"""

from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.db import OperationalError
from django.utils import timezone

from ticketing.events import decode_event
from ticketing.exceptions import CommitFailed
from ticketing.models import Document, RetryJob
from ticketing.queue import APPLY_FAILURE, REPROCESS_EVENT, SAVE_TRANSACTION
from ticketing.state_machines import RetryJobStatus
from ticketing.tasks import (
    STUCK_PROCESSING_THRESHOLD_MINUTES,
    process_retry_job,
    requeue_retry_jobs,
    reset_stuck_retry_jobs,
)
from ticketing.tests.factories import (
    CheckoutSessionDataFactory,
    PaymentIntentDataFactory,
    RetryJobFactory,
    build_metadata,
    make_event,
)


@pytest.fixture
def record_snapshot(materializer, session_lookup):
    session_lookup.add(CheckoutSessionDataFactory(id="cs_1", payment_intent="pi_1"))
    event = decode_event(
        make_event("payment_intent.succeeded", PaymentIntentDataFactory(id="pi_1"))
    )
    return materializer.materialize(event).to_document()


def age(job, minutes):
    """Backdate a job's updated_at."""
    RetryJob.objects.filter(id=job.id).update(
        updated_at=timezone.now() - timedelta(minutes=minutes)
    )


# =============================================================================
# Queue
# =============================================================================


class TestTransactionRetryQueue:
    """Tests for TransactionRetryQueue.enqueue."""

    def test_persists_and_dispatches(self, queue, mock_dispatch):
        """Should create a pending job and hand its id to Celery."""
        job = queue.enqueue(SAVE_TRANSACTION, {"paymentIntentId": "pi_1", "mirrorKey": "cs_1"})

        stored = RetryJob.objects.get(id=job.id)
        assert stored.status == RetryJobStatus.PENDING
        assert stored.name == SAVE_TRANSACTION
        assert stored.payment_intent_id == "pi_1"
        assert stored.payload["mirrorKey"] == "cs_1"
        mock_dispatch.assert_called_once_with(str(job.id))

    def test_broker_failure_keeps_job(self, queue, mock_dispatch):
        """Should keep the job when the broker is unavailable."""
        mock_dispatch.side_effect = OperationalError("broker down")

        job = queue.enqueue(APPLY_FAILURE, {"paymentIntentId": "pi_1", "patch": {}})

        assert RetryJob.objects.filter(id=job.id, status=RetryJobStatus.PENDING).exists()

    def test_payload_without_payment_intent(self, queue):
        job = queue.enqueue(REPROCESS_EVENT, {"paymentIntentId": None, "event": {}})

        assert job.payment_intent_id == ""


# =============================================================================
# process_retry_job
# =============================================================================


class TestProcessRetryJob:
    """Tests for the process_retry_job task."""

    def test_save_transaction_success_deletes_job(self, use_context, record_snapshot):
        """Should commit the snapshot and delete the job."""
        job = RetryJobFactory(
            name=SAVE_TRANSACTION,
            payment_intent_id="pi_1",
            payload={
                "paymentIntentId": "pi_1",
                "mirrorKey": "cs_1",
                "transactionData": record_snapshot,
            },
        )

        result = process_retry_job(str(job.id))

        assert result["status"] == "completed"
        assert not RetryJob.objects.filter(id=job.id).exists()
        primary = Document.objects.get(collection="payments", document_id="pi_1").data
        assert primary["tickets"] == record_snapshot["tickets"]
        assert primary["payment"]["amount"] == 50.0
        assert Document.objects.filter(collection="checkouts", document_id="cs_1").exists()
        assert Document.objects.filter(collection="schedules", document_id="pi_1").exists()

    def test_apply_failure_success(self, use_context):
        job = RetryJobFactory(
            name=APPLY_FAILURE,
            payment_intent_id="pi_2",
            payload={
                "paymentIntentId": "pi_2",
                "mirrorKey": "cs_2",
                "patch": {
                    "status": "failed",
                    "failure": {
                        "errorCode": "card_declined",
                        "errorMessage": "Declined",
                        "timestamp": "2026-01-05T12:00:00+00:00",
                    },
                },
            },
        )

        result = process_retry_job(str(job.id))

        assert result["status"] == "completed"
        mirror = Document.objects.get(collection="checkouts", document_id="cs_2").data
        assert mirror["failure"]["errorCode"] == "card_declined"

    def test_reprocess_event_success(self, use_context, session_lookup):
        """Should run the stored event through its handler again."""
        session_lookup.add(CheckoutSessionDataFactory(id="cs_3", payment_intent="pi_3"))
        event = make_event("payment_intent.succeeded", PaymentIntentDataFactory(id="pi_3"))
        job = RetryJobFactory(
            name=REPROCESS_EVENT,
            payment_intent_id="pi_3",
            payload={"paymentIntentId": "pi_3", "event": event},
        )

        result = process_retry_job(str(job.id))

        assert result["status"] == "completed"
        assert Document.objects.filter(collection="payments", document_id="pi_3").exists()

    def test_retryable_failure_marks_job_failed_and_raises(
        self, use_context, record_snapshot
    ):
        """Should record the error and re-raise for Celery retry."""
        job = RetryJobFactory(
            name=SAVE_TRANSACTION,
            payload={"paymentIntentId": "pi_1", "transactionData": record_snapshot},
        )

        with patch.object(
            use_context.writer,
            "commit",
            side_effect=CommitFailed("Failed to commit transaction pi_1"),
        ):
            with pytest.raises(CommitFailed):
                process_retry_job(str(job.id))

        # Reload from DB (avoid django-fsm refresh_from_db issue)
        job = RetryJob.objects.get(id=job.id)
        assert job.status == RetryJobStatus.FAILED
        assert job.attempts == 1
        assert "CommitFailed" in job.last_error
        assert not Document.objects.exists()

    def test_unexpected_errors_are_retried(self, use_context):
        job = RetryJobFactory(name=SAVE_TRANSACTION, payload={"paymentIntentId": "pi_1"})

        # Missing transactionData raises KeyError inside the consumer
        with pytest.raises(KeyError):
            process_retry_job(str(job.id))

        job = RetryJob.objects.get(id=job.id)
        assert job.status == RetryJobStatus.FAILED

    def test_dead_letters_when_attempts_exhausted(self, use_context, record_snapshot):
        """Should dead-letter the job on its last allowed attempt."""
        job = RetryJobFactory(
            name=SAVE_TRANSACTION,
            status=RetryJobStatus.FAILED,
            attempts=2,
            payload={"paymentIntentId": "pi_1", "transactionData": record_snapshot},
        )

        with patch.object(
            use_context.writer, "commit", side_effect=CommitFailed("still failing")
        ):
            result = process_retry_job(str(job.id))

        assert result["status"] == "dead_lettered"
        job = RetryJob.objects.get(id=job.id)
        assert job.is_dead_lettered
        assert job.attempts == 3
        assert job.dead_lettered_at is not None

    def test_dead_letters_permanent_errors(self, use_context, session_lookup):
        """Should dead-letter immediately when the booking is incomplete."""
        session_lookup.add(
            CheckoutSessionDataFactory(
                payment_intent="pi_4", metadata=build_metadata(tickets=[])
            )
        )
        event = make_event("payment_intent.succeeded", PaymentIntentDataFactory(id="pi_4"))
        job = RetryJobFactory(
            name=REPROCESS_EVENT,
            payload={"paymentIntentId": "pi_4", "event": event},
        )

        result = process_retry_job(str(job.id))

        assert result["status"] == "dead_lettered"
        job = RetryJob.objects.get(id=job.id)
        assert job.attempts == 1
        assert "INCOMPLETE_BOOKING_DATA" in job.last_error

    def test_dead_letters_unknown_consumer(self, use_context):
        job = RetryJobFactory(name="no_such_consumer")

        result = process_retry_job(str(job.id))

        assert result["status"] == "dead_lettered"
        assert RetryJob.objects.get(id=job.id).is_dead_lettered

    def test_skips_job_in_flight(self, use_context):
        job = RetryJobFactory(status=RetryJobStatus.PROCESSING)

        result = process_retry_job(str(job.id))

        assert result["status"] == "skipped"

    def test_skips_dead_lettered_job(self, use_context):
        job = RetryJobFactory(status=RetryJobStatus.DEAD_LETTERED)

        result = process_retry_job(str(job.id))

        assert result["status"] == "skipped"

    def test_job_not_found(self, db):
        result = process_retry_job(str(uuid4()))

        assert result["status"] == "not_found"


# =============================================================================
# Periodic tasks
# =============================================================================


class TestRequeueRetryJobs:
    """Tests for the requeue_retry_jobs task."""

    def test_redispatches_old_pending_and_failed(self, db, mock_dispatch):
        """Should re-dispatch jobs idle longer than the threshold."""
        pending = RetryJobFactory()
        failed = RetryJobFactory(status=RetryJobStatus.FAILED, attempts=1)
        age(pending, 20)
        age(failed, 20)

        result = requeue_retry_jobs()

        assert result["queued_count"] == 2
        dispatched = {call.args[0] for call in mock_dispatch.call_args_list}
        assert dispatched == {str(pending.id), str(failed.id)}

    def test_ignores_recent_and_terminal_jobs(self, db, mock_dispatch):
        RetryJobFactory()
        dead = RetryJobFactory(status=RetryJobStatus.DEAD_LETTERED)
        processing = RetryJobFactory(status=RetryJobStatus.PROCESSING)
        age(dead, 60)
        age(processing, 60)

        result = requeue_retry_jobs()

        assert result["queued_count"] == 0
        mock_dispatch.assert_not_called()


class TestResetStuckRetryJobs:
    """Tests for the reset_stuck_retry_jobs task."""

    def test_resets_stuck_job_to_failed(self, db):
        job = RetryJobFactory(status=RetryJobStatus.PROCESSING, attempts=1)
        age(job, STUCK_PROCESSING_THRESHOLD_MINUTES + 5)

        result = reset_stuck_retry_jobs()

        assert result["reset_count"] == 1
        job = RetryJob.objects.get(id=job.id)
        assert job.status == RetryJobStatus.FAILED
        assert "timed out" in job.last_error

    def test_dead_letters_stuck_job_without_attempts_left(self, db):
        job = RetryJobFactory(status=RetryJobStatus.PROCESSING, attempts=3)
        age(job, STUCK_PROCESSING_THRESHOLD_MINUTES + 5)

        reset_stuck_retry_jobs()

        assert RetryJob.objects.get(id=job.id).is_dead_lettered

    def test_leaves_recent_processing_jobs(self, db):
        job = RetryJobFactory(status=RetryJobStatus.PROCESSING, attempts=1)

        result = reset_stuck_retry_jobs()

        assert result["reset_count"] == 0
        assert RetryJob.objects.get(id=job.id).status == RetryJobStatus.PROCESSING
