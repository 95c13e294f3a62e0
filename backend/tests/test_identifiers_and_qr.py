"""
Identifier format and QR image handling.
"""

import base64
import io
import re
from datetime import datetime

import pytest
from werkzeug.datastructures import FileStorage

from parking_app.errors import StorageError, ValidationError
from parking_app.services import identifier_service, qr_service


NOW = datetime(2026, 10, 19, 8, 30)
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="
)


class TestIdentifiers:
    def test_format(self):
        voucher_id = identifier_service.new_voucher_id(NOW)
        assert re.fullmatch(r"VCH_20261019_[A-Z0-9]{6}", voucher_id)
        assert re.fullmatch(r"USE_20261019_[A-Z0-9]{6}", identifier_service.new_usage_id(NOW))

    def test_collision_retried(self, monkeypatch):
        suffixes = iter(["AAAAAA", "AAAAAA", "BBBBBB"])
        monkeypatch.setattr(identifier_service, "random_suffix", lambda: next(suffixes))
        taken = {"VCH_20261019_AAAAAA"}
        assert identifier_service.new_voucher_id(NOW, taken=taken) == "VCH_20261019_BBBBBB"

    def test_gives_up_after_max_attempts(self, monkeypatch):
        monkeypatch.setattr(identifier_service, "random_suffix", lambda: "AAAAAA")
        with pytest.raises(StorageError):
            identifier_service.new_voucher_id(NOW, taken={"VCH_20261019_AAAAAA"})


class TestQrImages:
    def test_generated_qr_is_png_data_url(self, ctx):
        data_url = qr_service.qr_data_url_for("http://localhost/redeem.html?v=VCH_20261019_ABCDEF")
        assert data_url.startswith("data:image/png;base64,")
        payload = base64.b64decode(data_url.split(",", 1)[1])
        assert payload.startswith(b"\x89PNG")

    def test_file_upload_converted(self, ctx):
        upload = FileStorage(stream=io.BytesIO(PNG_BYTES), filename="qr.png", content_type="image/png")
        data_url = qr_service.file_to_data_url(upload)
        assert data_url == "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")

    def test_file_upload_wrong_type(self, ctx):
        upload = FileStorage(stream=io.BytesIO(b"%PDF-1.4"), filename="qr.pdf", content_type="application/pdf")
        with pytest.raises(ValidationError):
            qr_service.file_to_data_url(upload)

    def test_file_upload_too_large(self, ctx):
        ctx.config["QR_MAX_BYTES"] = 16
        upload = FileStorage(stream=io.BytesIO(PNG_BYTES), filename="qr.png", content_type="image/png")
        with pytest.raises(ValidationError):
            qr_service.file_to_data_url(upload)

    def test_empty_upload(self, ctx):
        upload = FileStorage(stream=io.BytesIO(b""), filename="qr.png", content_type="image/png")
        with pytest.raises(ValidationError):
            qr_service.file_to_data_url(upload)
