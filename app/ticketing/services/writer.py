"""
Durable writer for transaction records.

This module provides the DurableWriter class which persists a
TransactionRecord across its collections in one atomic unit:

- primary collection (``payments``), keyed by payment intent id
- mirror collection (``checkouts``), keyed by checkout session id
- schedule collection (``schedules``), keyed by payment intent id, for
  records that originate from a payment event

Either every write lands or none does. Any failure inside the unit rolls
back and surfaces as CommitFailed, which carries what the retry queue
needs to repeat the operation.

New documents are inserted with ``store.create()``. If another unit
inserted the same key after our locked read found nothing, the insert
reports the collision and the document is re-read under lock and merged,
so a concurrent commit is never overwritten.

Merge Rules (existing documents):
    - Top-level fields are overwritten
    - tickets, qrCodeUrl and verified are only written on creation
    - 'payment' belongs to payment events, 'checkout' to checkout events;
      an event never overwrites an existing sub-object it does not own

Status Rules (independent of arrival order):
    - A payment success is final: it sets 'succeeded', clears 'failure',
      and later failure patches leave the document alone
    - Otherwise 'failed' is sticky: a checkout commit never resets it

Usage:
    from ticketing.services import DurableWriter

    writer = DurableWriter()
    writer.commit(record, mirror_key=record.session_id)
    writer.apply_failure("pi_123", patch)
"""

from __future__ import annotations

from typing import Any

from django.conf import settings

from core.protocols import DocumentStore
from core.services import BaseService

from ticketing.exceptions import CommitFailed
from ticketing.services.materializer import build_schedule_entry
from ticketing.state_machines import RecordOrigin, TransactionStatus
from ticketing.store import DjangoDocumentStore
from ticketing.types import FailurePatch, TransactionRecord

# =============================================================================
# Constants
# =============================================================================

DEFAULT_COLLECTIONS = {
    "primary": "payments",
    "mirror": "checkouts",
    "schedule": "schedules",
}

# Written when the document is created, never on merge
CREATE_ONLY_FIELDS = frozenset(["tickets", "qrCodeUrl", "verified"])

# Field -> origin allowed to overwrite it once it exists
OWNED_FIELDS = {
    "payment": RecordOrigin.PAYMENT,
    "checkout": RecordOrigin.CHECKOUT,
    "origin": RecordOrigin.PAYMENT,
}

COMMIT_OPERATION = "commit"
APPLY_FAILURE_OPERATION = "apply_failure"


def merge_fields(
    existing: dict[str, Any],
    incoming: dict[str, Any],
    origin: str,
) -> dict[str, Any]:
    """
    Select the incoming fields allowed to overwrite an existing document.

    Args:
        existing: Stored document data
        incoming: Document produced by TransactionRecord.to_document()
        origin: Origin of the incoming record

    Returns:
        The top-level fields to merge

    Example:
        merge_fields({"verified": True}, {"verified": False, "status": "succeeded"}, "payment")
        # {"status": "succeeded"}

        merge_fields({"status": "failed"}, {"status": "succeeded"}, "checkout")
        # {}
    """
    patch = {}
    for key, value in incoming.items():
        if key in CREATE_ONLY_FIELDS and key in existing:
            continue
        owner = OWNED_FIELDS.get(key)
        if owner is not None and owner != origin and key in existing:
            continue
        patch[key] = value

    if existing.get("status") == TransactionStatus.FAILED:
        if origin == RecordOrigin.PAYMENT:
            patch["failure"] = None
        else:
            patch.pop("status", None)
    return patch


def is_settled(document: dict[str, Any] | None) -> bool:
    """Whether a document records a successful payment, which no failure overrides."""
    return bool(
        document
        and document.get("status") == TransactionStatus.SUCCEEDED
        and document.get("payment")
    )


class DurableWriter(BaseService):
    """
    Atomic multi-collection writer.

    Args:
        store: DocumentStore implementation (default: DjangoDocumentStore)
        collections: Collection names keyed primary/mirror/schedule
            (default: settings.TICKETING_COLLECTIONS)
        deep_link_base_url: Base URL for schedule entry links
            (default: settings.TICKETING_DEEP_LINK_BASE_URL)
    """

    def __init__(
        self,
        store: DocumentStore | None = None,
        collections: dict[str, str] | None = None,
        deep_link_base_url: str | None = None,
    ):
        self.store = store or DjangoDocumentStore()
        self.collections = {
            **DEFAULT_COLLECTIONS,
            **(collections or getattr(settings, "TICKETING_COLLECTIONS", {})),
        }
        self.deep_link_base_url = deep_link_base_url or getattr(
            settings, "TICKETING_DEEP_LINK_BASE_URL", ""
        )

    @property
    def primary(self) -> str:
        return self.collections["primary"]

    @property
    def mirror(self) -> str:
        return self.collections["mirror"]

    @property
    def schedule(self) -> str:
        return self.collections["schedule"]

    # =========================================================================
    # Commit
    # =========================================================================

    def commit(self, record: TransactionRecord, mirror_key: str | None = None) -> None:
        """
        Create or merge the record in all of its collections atomically.

        Args:
            record: The materialized record
            mirror_key: Mirror document key (default: record.session_id)

        Raises:
            CommitFailed: Any failure inside the atomic unit; nothing was
                written
        """
        logger = self.get_logger()
        mirror_key = mirror_key or record.session_id
        document = record.to_document()
        log_context = {
            "payment_intent_id": record.transaction_id,
            "mirror_key": mirror_key,
            "origin": str(record.origin),
        }

        try:
            with self.store.atomic():
                primary = self.store.get(
                    self.primary, record.transaction_id, for_update=True
                )
                mirror = (
                    self.store.get(self.mirror, mirror_key, for_update=True)
                    if mirror_key
                    else None
                )

                created = self._upsert(
                    self.primary, record.transaction_id, primary, document, record.origin
                )
                if mirror_key:
                    self._upsert(self.mirror, mirror_key, mirror, document, record.origin)
                else:
                    logger.warning("Record has no mirror key", extra=log_context)

                if record.is_payment:
                    entry = build_schedule_entry(record, self.deep_link_base_url).to_document()
                    if not self.store.create(self.schedule, record.transaction_id, entry):
                        self.store.merge(self.schedule, record.transaction_id, entry)

        except Exception as e:
            logger.error(
                f"Transaction commit failed: {e}",
                extra=log_context,
                exc_info=True,
            )
            raise CommitFailed(
                f"Failed to commit transaction {record.transaction_id}",
                details={
                    "operation": COMMIT_OPERATION,
                    "payment_intent_id": record.transaction_id,
                    "mirror_key": mirror_key,
                    "snapshot": document,
                    "error": str(e),
                },
            ) from e

        logger.info(
            "Transaction committed",
            extra={**log_context, "document_created": created},
        )

    def _upsert(
        self,
        collection: str,
        document_id: str,
        existing: dict[str, Any] | None,
        document: dict[str, Any],
        origin: str,
    ) -> bool:
        """Create the document or merge into it; return True if it was created."""
        if existing is None:
            if self.store.create(collection, document_id, document):
                return True
            # Inserted concurrently since the locked read
            existing = self.store.get(collection, document_id, for_update=True) or {}
            self.get_logger().info(
                "Concurrent write detected, merging",
                extra={"collection": collection, "document_id": document_id},
            )
        patch = merge_fields(existing, document, origin)
        if patch:
            self.store.merge(collection, document_id, patch)
        return False

    # =========================================================================
    # Failure Patch
    # =========================================================================

    def apply_failure(
        self,
        payment_intent_id: str,
        patch: FailurePatch,
        mirror_key: str | None = None,
    ) -> None:
        """
        Merge a failure patch onto the primary and mirror documents.

        Only ``status`` and ``failure`` are written. When no mirror key is
        given, the sessionId stored on the primary document is used. A
        document that already records a successful payment is left as is;
        the failure belongs to an earlier attempt delivered late.

        Args:
            payment_intent_id: Transaction key
            patch: The failure patch
            mirror_key: Mirror document key, if known

        Raises:
            CommitFailed: Any failure inside the atomic unit
        """
        logger = self.get_logger()
        data = patch.to_document()
        log_context = {
            "payment_intent_id": payment_intent_id,
            "error_code": patch.error_code,
        }
        skipped: list[str] = []

        try:
            with self.store.atomic():
                primary = self.store.get(self.primary, payment_intent_id, for_update=True)
                mirror_key = mirror_key or (primary or {}).get("sessionId")

                if primary is None:
                    self.store.merge(
                        self.primary,
                        payment_intent_id,
                        {"transactionId": payment_intent_id, **data},
                    )
                elif is_settled(primary):
                    skipped.append(self.primary)
                else:
                    self.store.merge(self.primary, payment_intent_id, data)

                if mirror_key:
                    mirror = self.store.get(self.mirror, mirror_key, for_update=True)
                    if is_settled(mirror):
                        skipped.append(self.mirror)
                    else:
                        self.store.merge(self.mirror, mirror_key, data)

        except Exception as e:
            logger.error(
                f"Failure patch could not be applied: {e}",
                extra=log_context,
                exc_info=True,
            )
            raise CommitFailed(
                f"Failed to record payment failure for {payment_intent_id}",
                details={
                    "operation": APPLY_FAILURE_OPERATION,
                    "payment_intent_id": payment_intent_id,
                    "mirror_key": mirror_key,
                    "snapshot": data,
                    "error": str(e),
                },
            ) from e

        if skipped:
            logger.warning(
                "Failure ignored for settled payment",
                extra={**log_context, "mirror_key": mirror_key, "collections": skipped},
            )
        else:
            logger.info(
                "Payment failure recorded",
                extra={**log_context, "mirror_key": mirror_key},
            )
