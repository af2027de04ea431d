"""
Ticketing services.

- TransactionMaterializer: builds TransactionRecords from purchase events
- DurableWriter: persists records atomically across collections
- DataUrlQrEncoder: default QR encoder

Usage:
    from ticketing.services import DurableWriter, TransactionMaterializer

    record = TransactionMaterializer().materialize(event)
    DurableWriter().commit(record, mirror_key=record.session_id)
"""

from ticketing.services.materializer import (
    TransactionMaterializer,
    build_failure_patch,
    build_schedule_entry,
    generate_ticket_ids,
)
from ticketing.services.qr import DataUrlQrEncoder
from ticketing.services.writer import DurableWriter, merge_fields

__all__ = [
    "DataUrlQrEncoder",
    "DurableWriter",
    "TransactionMaterializer",
    "build_failure_patch",
    "build_schedule_entry",
    "generate_ticket_ids",
    "merge_fields",
]
