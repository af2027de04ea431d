"""
RetryJob model for the durable transaction retry queue.

A RetryJob is created whenever ingestion hits a retryable failure after
the webhook has been acknowledged. The row is the durable record of the
pending work; Celery only carries its id. Jobs are deleted on the first
successful attempt and kept as dead letters once they run out of
attempts or hit a non-retryable error.

Usage:
    from ticketing.models import RetryJob

    job = RetryJob.objects.create(
        name="save_transaction",
        payment_intent_id="pi_123",
        payload={"paymentIntentId": "pi_123", "transactionData": {...}},
    )
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from ticketing.state_machines import RetryJobStatus


class RetryJob(UUIDPrimaryKeyMixin, BaseModel):
    """
    A queued retry of a failed ingestion step.

    State Machine:
        PENDING → PROCESSING   (worker picks the job up)
        PROCESSING → FAILED    (attempt failed, will be retried)
        FAILED → PROCESSING    (next attempt)
        PROCESSING/FAILED → DEAD_LETTERED (attempts exhausted or permanent error)

    Fields:
        name: Consumer name (save_transaction, apply_failure, reprocess_event)
        payment_intent_id: Transaction the job belongs to
        payload: JSON snapshot handed to the consumer
        status: Current status (managed by FSM)
        attempts: Number of attempts started
        last_error: Error from the most recent failed attempt
        dead_lettered_at: When the job was abandoned
    """

    name = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Registered consumer name",
    )

    payment_intent_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx) the job belongs to",
    )

    payload = models.JSONField(
        default=dict,
        help_text="Snapshot passed to the consumer (JSON)",
    )

    status = FSMField(
        default=RetryJobStatus.PENDING,
        choices=RetryJobStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status of the job (managed by FSM)",
    )

    attempts = models.PositiveIntegerField(
        default=0,
        help_text="Number of attempts started",
    )

    last_error = models.TextField(
        null=True,
        blank=True,
        help_text="Error message from the most recent failed attempt",
    )

    dead_lettered_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the job was abandoned",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Retry Job"
        verbose_name_plural = "Retry Jobs"
        indexes = [
            models.Index(
                fields=["status", "updated_at"],
                name="ticketing_retryjob_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"RetryJob({self.id}, {self.name}, {self.status})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[RetryJobStatus.PENDING, RetryJobStatus.FAILED],
        target=RetryJobStatus.PROCESSING,
    )
    def start_attempt(self):
        """
        Begin an attempt.

        Transition: PENDING/FAILED -> PROCESSING
        """
        self.attempts += 1

    @transition(
        field=status,
        source=RetryJobStatus.PROCESSING,
        target=RetryJobStatus.FAILED,
    )
    def fail(self, error: str):
        """
        Record a failed attempt that will be retried.

        Transition: PROCESSING -> FAILED
        """
        self.last_error = error

    @transition(
        field=status,
        source=[RetryJobStatus.PROCESSING, RetryJobStatus.FAILED],
        target=RetryJobStatus.DEAD_LETTERED,
    )
    def dead_letter(self, error: str | None = None):
        """
        Abandon the job.

        Transition: PROCESSING/FAILED -> DEAD_LETTERED
        """
        if error:
            self.last_error = error
        self.dead_lettered_at = timezone.now()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_dead_lettered(self) -> bool:
        return self.status == RetryJobStatus.DEAD_LETTERED
