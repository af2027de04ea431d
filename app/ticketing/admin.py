"""
Ticketing admin configuration.

Registers stored documents and retry jobs with the Django admin so
operators can inspect transactions and dead-lettered jobs.
"""

from django.contrib import admin, messages

from ticketing.models import Document, RetryJob
from ticketing.state_machines import RetryJobStatus

__all__ = [
    "DocumentAdmin",
    "RetryJobAdmin",
]


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Document.

    Documents are written only by the ingestion pipeline, so every field
    is read-only here.
    """

    list_display = ["collection", "document_id", "created_at", "updated_at"]
    list_filter = ["collection"]
    search_fields = ["document_id"]
    readonly_fields = ["collection", "document_id", "data", "created_at", "updated_at"]
    ordering = ["-updated_at"]

    def has_add_permission(self, request):
        return False


@admin.register(RetryJob)
class RetryJobAdmin(admin.ModelAdmin):
    """
    Admin configuration for RetryJob.

    Provides visibility into queued and dead-lettered retries, with an
    action to re-dispatch selected jobs.
    """

    list_display = [
        "id",
        "name",
        "payment_intent_id",
        "status",
        "attempts",
        "created_at",
        "dead_lettered_at",
    ]
    list_filter = ["status", "name"]
    search_fields = ["id", "payment_intent_id"]
    readonly_fields = [
        "id",
        "name",
        "payment_intent_id",
        "payload",
        "status",
        "attempts",
        "last_error",
        "dead_lettered_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    actions = ["redispatch_jobs"]

    @admin.action(description="Re-dispatch selected pending/failed jobs")
    def redispatch_jobs(self, request, queryset):
        from ticketing.tasks import process_retry_job

        dispatched = 0
        for job in queryset.filter(
            status__in=[RetryJobStatus.PENDING, RetryJobStatus.FAILED]
        ):
            process_retry_job.delay(str(job.id))
            dispatched += 1
        self.message_user(request, f"Dispatched {dispatched} jobs", messages.SUCCESS)
