"""
Collaborators shared by webhook handlers and retry consumers.

An IngestionContext is built per request or per retry job and passed
explicitly, so no handler depends on module-level state.

Usage:
    from ticketing.context import IngestionContext

    context = IngestionContext.default()
    result = dispatch_event(event, context)

    # In tests
    context = IngestionContext(
        materializer=TransactionMaterializer(session_lookup=fake_lookup, qr_encoder=fake_qr),
        writer=DurableWriter(),
        queue=TransactionRetryQueue(),
    )
"""

from __future__ import annotations

from dataclasses import dataclass

from core.protocols import RetryQueue

from ticketing.queue import TransactionRetryQueue
from ticketing.services import DurableWriter, TransactionMaterializer


@dataclass
class IngestionContext:
    materializer: TransactionMaterializer
    writer: DurableWriter
    queue: RetryQueue

    @classmethod
    def default(cls) -> IngestionContext:
        """Build a context from settings with the production collaborators."""
        return cls(
            materializer=TransactionMaterializer(),
            writer=DurableWriter(),
            queue=TransactionRetryQueue(),
        )
