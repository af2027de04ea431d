"""
Tests for the PNG data URL QR encoder.
"""

import base64

from ticketing.services import DataUrlQrEncoder

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class TestDataUrlQrEncoder:
    """Tests for DataUrlQrEncoder."""

    def test_encodes_png_data_url(self):
        url = DataUrlQrEncoder().encode(
            {"id": "pi_1", "user": "user_1", "tickets": [{"title": "GA", "price": 25}]}
        )

        prefix, encoded = url.split(",", 1)
        assert prefix == "data:image/png;base64"
        assert base64.b64decode(encoded).startswith(PNG_SIGNATURE)

    def test_larger_box_size_gives_larger_image(self):
        data = {"id": "pi_1", "user": "user_1", "tickets": []}

        small = DataUrlQrEncoder(box_size=2).encode(data)
        large = DataUrlQrEncoder(box_size=12).encode(data)

        assert len(large) > len(small)
