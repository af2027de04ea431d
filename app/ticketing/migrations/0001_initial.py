import uuid

import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Document",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "collection",
                    models.CharField(
                        db_index=True,
                        help_text="Collection the document belongs to",
                        max_length=64,
                    ),
                ),
                (
                    "document_id",
                    models.CharField(
                        help_text="Document key within its collection",
                        max_length=255,
                    ),
                ),
                (
                    "data",
                    models.JSONField(default=dict, help_text="Document body (JSON)"),
                ),
            ],
            options={
                "verbose_name": "Document",
                "verbose_name_plural": "Documents",
                "ordering": ["collection", "document_id"],
            },
        ),
        migrations.CreateModel(
            name="RetryJob",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        db_index=True,
                        help_text="Registered consumer name",
                        max_length=64,
                    ),
                ),
                (
                    "payment_intent_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Stripe PaymentIntent ID (pi_xxx) the job belongs to",
                        max_length=255,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        default=dict,
                        help_text="Snapshot passed to the consumer (JSON)",
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("failed", "Failed"),
                            ("dead_lettered", "Dead Lettered"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current status of the job (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "attempts",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Number of attempts started",
                    ),
                ),
                (
                    "last_error",
                    models.TextField(
                        blank=True,
                        help_text="Error message from the most recent failed attempt",
                        null=True,
                    ),
                ),
                (
                    "dead_lettered_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the job was abandoned",
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Retry Job",
                "verbose_name_plural": "Retry Jobs",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "updated_at"],
                        name="ticketing_retryjob_status_idx",
                    )
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="document",
            constraint=models.UniqueConstraint(
                fields=("collection", "document_id"),
                name="ticketing_document_unique_key",
            ),
        ),
    ]
