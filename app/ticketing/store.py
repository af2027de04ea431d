"""
Django ORM implementation of the document store.

Implements core.protocols.DocumentStore on top of the Document model.
Transactions map onto ``django.db.transaction.atomic`` and locked reads
onto ``select_for_update``. Inserts rely on the unique
(collection, document_id) constraint: a row that does not exist yet
cannot be locked, so of two units that both read None only the first
insert succeeds and the other sees ``create()`` return False.

Usage:
    from ticketing.store import DjangoDocumentStore

    store = DjangoDocumentStore()
    with store.atomic():
        existing = store.get("payments", "pi_123", for_update=True)
        if existing is None and store.create("payments", "pi_123", {...}):
            return
        store.merge("payments", "pi_123", {"status": "failed"})
"""

from __future__ import annotations

import copy
import logging
from contextlib import AbstractContextManager
from typing import Any

from django.db import IntegrityError, transaction

from ticketing.models import Document

logger = logging.getLogger(__name__)


class DjangoDocumentStore:
    """
    Document store backed by the ``ticketing_document`` table.

    Args:
        using: Database alias (default: Django's default database)
    """

    def __init__(self, using: str | None = None):
        self.using = using

    def _queryset(self):
        queryset = Document.objects.all()
        if self.using:
            queryset = queryset.using(self.using)
        return queryset

    def _locked(self, collection: str, document_id: str) -> Document | None:
        return (
            self._queryset()
            .select_for_update()
            .filter(collection=collection, document_id=document_id)
            .first()
        )

    def get(
        self,
        collection: str,
        document_id: str,
        for_update: bool = False,
    ) -> dict[str, Any] | None:
        """
        Return a copy of the document data, or None if it doesn't exist.

        ``for_update=True`` must be used inside ``atomic()``.
        """
        queryset = self._queryset()
        if for_update:
            queryset = queryset.select_for_update()
        document = queryset.filter(collection=collection, document_id=document_id).first()
        if document is None:
            return None
        return copy.deepcopy(document.data)

    def create(self, collection: str, document_id: str, data: dict[str, Any]) -> bool:
        """
        Insert a document; return False if the key is already taken.

        The insert runs in its own savepoint so a duplicate key leaves the
        enclosing transaction usable.
        """
        try:
            with self.atomic():
                self._queryset().create(
                    collection=collection,
                    document_id=document_id,
                    data=data,
                )
        except IntegrityError:
            # Another unit inserted the same key after our read
            logger.info(
                f"Document {collection}/{document_id} already exists",
                extra={"collection": collection, "document_id": document_id},
            )
            return False

        logger.debug(
            f"Created document {collection}/{document_id}",
            extra={"collection": collection, "document_id": document_id},
        )
        return True

    def merge(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        """
        Overwrite the given top-level fields, creating the document if absent.

        Fields not present in ``data`` keep their stored values.
        """
        with self.atomic():
            document = self._locked(collection, document_id)
            if document is None:
                if self.create(collection, document_id, data):
                    return
                document = self._locked(collection, document_id)
            document.data = {**document.data, **data}
            document.save(update_fields=["data", "updated_at"])
        logger.debug(
            f"Merged document {collection}/{document_id}",
            extra={
                "collection": collection,
                "document_id": document_id,
                "fields": sorted(data),
            },
        )

    def atomic(self) -> AbstractContextManager[None]:
        """Return a transaction context; nested calls become savepoints."""
        return transaction.atomic(using=self.using)
