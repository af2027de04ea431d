"""
Checkout session metadata parsing.

Stripe metadata values are flat strings, so the checkout creation step
stores the user, ticket list and organizer as JSON-encoded strings under
the ``user``, ``tickets`` and ``organizer`` keys. This module decodes
them back into typed records.

Parsing never raises. Each key is decoded on its own: a missing or
malformed entry logs an error and leaves that field at its empty default
while the other two still decode. Callers decide whether an empty user or
ticket list is acceptable (see TransactionMaterializer).

Usage:
    from ticketing.metadata import parse_session_metadata

    metadata = parse_session_metadata(session.metadata)
    if metadata.user.is_empty or not metadata.tickets:
        raise IncompleteBookingData(...)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from ticketing.types import OrganizerRecord, SessionMetadata, Ticket, UserRecord

logger = logging.getLogger(__name__)


def _decode(metadata: Mapping[str, Any], key: str, expected: type) -> Any | None:
    """
    Decode one JSON-encoded metadata entry.

    Returns:
        The decoded value, or None if the entry is absent, is not valid
        JSON, or does not decode to ``expected``
    """
    raw = metadata.get(key)
    if raw in (None, ""):
        return None

    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(
            f"Failed to decode session metadata '{key}': {e}",
            extra={"metadata_key": key},
        )
        return None

    if not isinstance(value, expected):
        logger.error(
            f"Session metadata '{key}' has unexpected type {type(value).__name__}",
            extra={"metadata_key": key, "expected_type": expected.__name__},
        )
        return None

    return value


def parse_session_metadata(metadata: Mapping[str, Any] | None) -> SessionMetadata:
    """
    Parse the string-encoded user, tickets and organizer metadata entries.

    Args:
        metadata: Checkout session metadata mapping (may be None)

    Returns:
        SessionMetadata with empty defaults for every entry that was
        missing or could not be decoded
    """
    result = SessionMetadata()
    if not metadata:
        return result

    user = _decode(metadata, "user", dict)
    if user is not None:
        result.user = UserRecord.from_dict(user)

    tickets = _decode(metadata, "tickets", list)
    if tickets is not None:
        for index, entry in enumerate(tickets):
            if not isinstance(entry, dict):
                logger.warning(
                    f"Dropping ticket entry {index}: expected object, "
                    f"got {type(entry).__name__}",
                    extra={"metadata_key": "tickets", "ticket_index": index},
                )
                continue
            result.tickets.append(Ticket.from_dict(entry))

    organizer = _decode(metadata, "organizer", dict)
    if organizer is not None:
        result.organizer = OrganizerRecord.from_dict(organizer)

    return result
