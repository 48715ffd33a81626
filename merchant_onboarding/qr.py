from __future__ import annotations

import base64
import binascii
import io

import qrcode
from PIL import Image
from qrcode.image.pil import PilImage

DATA_URL_PREFIX = "data:image/png;base64,"
QR_SIZE = 400
QR_BORDER = 1


def render_qr_png(data: str, *, size: int = QR_SIZE, border: int = QR_BORDER) -> bytes:
    """Encode ``data`` as a square PNG QR code with high error correction."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=10,
        border=border,
        image_factory=PilImage,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")
    img = img.resize((size, size), Image.NEAREST)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def to_data_url(png: bytes) -> str:
    return DATA_URL_PREFIX + base64.b64encode(png).decode("ascii")


def render_qr_data_url(data: str) -> str:
    return to_data_url(render_qr_png(data))


def decode_data_url(data_url: str) -> bytes:
    if not data_url.startswith(DATA_URL_PREFIX):
        raise ValueError("Not a PNG data URL")
    try:
        return base64.b64decode(data_url[len(DATA_URL_PREFIX):], validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Corrupt PNG data URL: {exc}") from exc
