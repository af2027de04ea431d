"""
Protocol definitions for ticketing collaborators.

Available Protocols:
    QrEncoder: Encodes a small JSON-serializable object as an opaque string

Usage:
    from ticketing.protocols import QrEncoder

    class StaticQrEncoder:
        def encode(self, data: dict) -> str:
            return "data:image/png;base64,AAAA"

    materializer = TransactionMaterializer(qr_encoder=StaticQrEncoder())
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class QrEncoder(Protocol):
    """
    Protocol for QR payload encoders.

    Implementations return an opaque string (typically a data URL) and
    raise any exception on failure; the materializer translates failures
    into QrEncodingFailed.
    """

    def encode(self, data: dict[str, Any]) -> str:
        """Return the encoded QR payload for ``data``."""
        ...
