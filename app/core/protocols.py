"""
Protocol definitions for generic infrastructure services.

This module defines Protocol classes that specify interfaces
for generic infrastructure concerns: document persistence and
durable work queues.

Protocols define contracts that services must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy substitution in tests

Available Protocols:
    DocumentStore: Collection/id keyed JSON documents with transactions
    RetryQueue: Durable enqueue of named jobs

Usage:
    from core.protocols import DocumentStore

    def record_visit(store: DocumentStore, page_id: str) -> None:
        with store.atomic():
            current = store.get("pages", page_id, for_update=True) or {}
            store.merge("pages", page_id, {"visits": current.get("visits", 0) + 1})

Note:
    - @runtime_checkable allows isinstance() checks
    - For domain-specific protocols (QR encoding), see ticketing.protocols
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractContextManager
    from typing import Any


@runtime_checkable
class DocumentStore(Protocol):
    """
    Protocol for document stores.

    Documents are JSON objects addressed by (collection, document_id).
    All reads and writes issued inside ``atomic()`` are applied
    all-or-nothing; reads made with ``for_update=True`` lock the document
    until the enclosing ``atomic()`` block exits. A missing document is not
    locked, so two units can both read None; ``create()`` lets only one of
    them insert.
    """

    def get(
        self,
        collection: str,
        document_id: str,
        for_update: bool = False,
    ) -> dict[str, Any] | None:
        """Return the document data, or None if it doesn't exist."""
        ...

    def create(self, collection: str, document_id: str, data: dict[str, Any]) -> bool:
        """
        Insert a new document.

        Returns False, leaving the stored document untouched, when one
        already exists under the key.
        """
        ...

    def merge(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        """Overwrite the given top-level fields, creating the document if absent."""
        ...

    def atomic(self) -> AbstractContextManager[None]:
        """Return a context manager delimiting one all-or-nothing unit."""
        ...


@runtime_checkable
class RetryQueue(Protocol):
    """
    Protocol for durable work queues.

    Example:
        queue.enqueue("save_transaction", {"paymentIntentId": "pi_123", ...})
    """

    def enqueue(self, name: str, payload: dict[str, Any]) -> Any:
        """Persist a job and schedule it for processing."""
        ...
