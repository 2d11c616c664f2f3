"""QR code rendering for authentication payloads."""

from __future__ import annotations

import io
import sys

import qrcode


def _build(payload: str, box_size: int) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_Q,
        box_size=box_size,
        border=2,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    return qr


def render_qr_png(payload: str) -> bytes:
    """Render ``payload`` as a PNG image."""
    img = _build(payload, box_size=10).make_image(fill_color="#000000", back_color="#FFFFFF")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def print_qr_terminal(payload: str, *, out=None) -> None:
    """Print ``payload`` as ASCII art so it can be scanned from a terminal."""
    _build(payload, box_size=1).print_ascii(out=out or sys.stdout, invert=True)
