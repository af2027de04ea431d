"""
Reusable model mixins.

Mixins:
    UUIDPrimaryKeyMixin: UUID primary key instead of auto-increment integer

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class RetryJob(UUIDPrimaryKeyMixin, BaseModel):
        name = models.CharField(max_length=64)
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    UUIDs can be generated before the insert, which lets a job id be handed
    to Celery in the same breath as the row is written, and they don't leak
    record counts through task arguments or logs.

    Fields:
        id: UUIDField as primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
