"""Login QR rendering helpers."""

from __future__ import annotations

import io

import qrcode


def render_png(data: str) -> bytes:
    """Render ``data`` as a PNG QR code."""

    qr = qrcode.QRCode(border=2, box_size=8)
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def print_ascii(data: str) -> None:
    """Print the QR code to the terminal when no admin relay is configured."""

    qr = qrcode.QRCode(border=1)
    qr.add_data(data)
    qr.make(fit=True)
    qr.print_ascii(invert=True)
