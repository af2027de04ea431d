"""
Default QR encoder for ticket payloads.

Renders the JSON-encoded payload as a PNG QR code and returns it as a
base64 data URL, ready to be stored on the transaction and shown in an
<img> tag.

Usage:
    from ticketing.services.qr import DataUrlQrEncoder

    url = DataUrlQrEncoder().encode({"id": "pi_123", "user": "u1", "tickets": []})
    url.startswith("data:image/png;base64,")  # True
"""

from __future__ import annotations

import base64
import io
import json
from typing import Any

import qrcode
from qrcode.image.pil import PilImage


class DataUrlQrEncoder:
    """
    QrEncoder producing ``data:image/png;base64,...`` strings.

    Args:
        box_size: Pixels per QR module
        border: Quiet-zone width in modules
    """

    def __init__(self, box_size: int = 10, border: int = 4):
        self.box_size = box_size
        self.border = border

    def encode(self, data: dict[str, Any]) -> str:
        payload = json.dumps(data, separators=(",", ":"), default=str)
        image = qrcode.make(
            payload,
            image_factory=PilImage,
            box_size=self.box_size,
            border=self.border,
        )
        buffer = io.BytesIO()
        image.save(buffer)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
