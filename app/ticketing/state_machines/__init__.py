"""
State enums for ticketing models and stored documents.
"""

from ticketing.state_machines.states import (
    RecordOrigin,
    RefundStatus,
    RetryJobStatus,
    TicketStatus,
    TransactionStatus,
)

__all__ = [
    "RecordOrigin",
    "RefundStatus",
    "RetryJobStatus",
    "TicketStatus",
    "TransactionStatus",
]
