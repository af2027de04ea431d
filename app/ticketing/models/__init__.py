"""
Ticketing domain models.

- Document: JSON documents backing the transaction document store
- RetryJob: Durable retry queue entries
"""

from ticketing.models.document import Document
from ticketing.models.retry_job import RetryJob

__all__ = [
    "Document",
    "RetryJob",
]
