"""
Document model backing the ticketing document store.

Transaction data is stored as JSON documents addressed by
(collection, document_id), mirroring a document database: the primary
``payments`` collection keyed by payment intent id, the ``checkouts``
mirror keyed by checkout session id, and ``schedules`` entries.

Usage:
    from ticketing.models import Document

    doc = Document.objects.get(collection="payments", document_id="pi_123")
    doc.data["status"]  # "succeeded"

Note:
    Application code reads and writes documents through
    ticketing.store.DjangoDocumentStore, not through this model directly.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel


class Document(BaseModel):
    """
    A JSON document in a named collection.

    Fields:
        collection: Collection name (e.g., 'payments')
        document_id: Key within the collection (e.g., payment intent id)
        data: The document body
    """

    collection = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Collection the document belongs to",
    )

    document_id = models.CharField(
        max_length=255,
        help_text="Document key within its collection",
    )

    data = models.JSONField(
        default=dict,
        help_text="Document body (JSON)",
    )

    class Meta:
        ordering = ["collection", "document_id"]
        verbose_name = "Document"
        verbose_name_plural = "Documents"
        constraints = [
            models.UniqueConstraint(
                fields=["collection", "document_id"],
                name="ticketing_document_unique_key",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.collection}/{self.document_id}"
