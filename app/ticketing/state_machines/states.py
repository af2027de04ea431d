"""
State enums for ticketing records.

These are Django TextChoices so they can back model fields (RetryJob.status
with django-fsm) and double as the string values written into stored
transaction documents.

RetryJob States:
    pending → processing → (deleted on success)
    pending → processing → failed → processing (retry)
    processing/failed → dead_lettered
"""

from django.db import models


class TransactionStatus(models.TextChoices):
    """Overall status of a stored transaction document."""

    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"


class TicketStatus(models.TextChoices):
    """Validity of an individual issued ticket."""

    VALID = "valid", "Valid"
    REFUNDED = "refunded", "Refunded"


class RefundStatus(models.TextChoices):
    """Refund state carried on the payment sub-object."""

    NOT_REFUNDED = "not_refunded", "Not Refunded"
    REFUNDED = "refunded", "Refunded"


class RecordOrigin(models.TextChoices):
    """
    Which webhook produced a transaction record.

    Payment records own the ``payment`` sub-object and produce a schedule
    entry; checkout records own the ``checkout`` sub-object.
    """

    PAYMENT = "payment", "Payment"
    CHECKOUT = "checkout", "Checkout"


class RetryJobStatus(models.TextChoices):
    """
    Lifecycle of a RetryJob.

    Successful jobs are deleted rather than moved to a terminal state, so
    there is no COMPLETED value.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    FAILED = "failed", "Failed"
    DEAD_LETTERED = "dead_lettered", "Dead Lettered"
