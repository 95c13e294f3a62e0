"""
QR image handling.

- Auto QR: encode a text (redeem URL or voucher id) as a PNG data URL
- Manual QR: validate an admin-uploaded image given as a data URL or as a
  multipart file, and normalize it to a data URL for storage

The image is only an association; it never affects voucher accounting.
"""

from __future__ import annotations

import base64
import binascii
import io
import re

import qrcode
from flask import current_app

from ..errors import ValidationError


ALLOWED_IMAGE_TYPES = ("image/png", "image/jpeg", "image/gif", "image/webp")

_DATA_URL = re.compile(r"^data:(image/(?:png|jpeg|jpg|gif|webp));base64,([A-Za-z0-9+/=\s]+)$")


def _max_bytes() -> int:
    return current_app.config.get("QR_MAX_BYTES", 2 * 1024 * 1024)


def qr_data_url_for(text: str, box_size: int = 8, border: int = 1) -> str:
    """Render `text` as a PNG QR code data URL."""
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(text)
    qr.make(fit=True)
    image = qr.make_image()
    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def validate_data_url(value) -> str:
    """Return the data URL unchanged if it is a well-formed, bounded base64 image."""
    if not isinstance(value, str):
        raise ValidationError("qrDataUrl must be an image data URL")
    value = value.strip()
    match = _DATA_URL.match(value)
    if not match:
        raise ValidationError("qrDataUrl must be a base64 image data URL (png, jpeg, gif or webp)")
    # base64 inflates by 4/3; reject oversized input before decoding it
    if len(value) > _max_bytes() * 4 // 3 + 64:
        raise ValidationError("QR image is too large")
    try:
        payload = base64.b64decode(re.sub(r"\s+", "", match.group(2)), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("qrDataUrl is not valid base64")
    if not payload or len(payload) > _max_bytes():
        raise ValidationError("QR image is too large" if payload else "QR image is empty")
    return value


def file_to_data_url(file_storage) -> str:
    """Convert an uploaded werkzeug FileStorage image into a validated data URL."""
    mimetype = (file_storage.mimetype or "").lower()
    if mimetype == "image/jpg":
        mimetype = "image/jpeg"
    if mimetype not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("QR image must be png, jpeg, gif or webp")
    payload = file_storage.read(_max_bytes() + 1)
    if not payload:
        raise ValidationError("QR image is empty")
    if len(payload) > _max_bytes():
        raise ValidationError("QR image is too large")
    encoded = base64.b64encode(payload).decode("ascii")
    return validate_data_url(f"data:{mimetype};base64,{encoded}")


def qr_for_voucher(voucher) -> str:
    """Uploaded image when present, otherwise a QR encoding the voucher id."""
    if voucher.qr_data_url:
        return voucher.qr_data_url
    return qr_data_url_for(voucher.id)
