# Overview: Flask API routes for voucher administration; parses input and returns JSON responses.

# backend/parking_app/routes/vouchers.py
"""
Voucher administration API routes

All routes require an admin session; state-changing routes also require
the X-CSRF-Token header. Vouchers are never deleted: DELETE disables.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_admin, request_meta
from ..errors import ServiceError, ValidationError, error_response, internal_error_response
from ..models import SOURCE_MANUAL
from ..services import voucher_service
from ..services import usage_service
from ..services import qr_service
from ..services.reporting_service import voucher_logs


vouchers_bp = Blueprint("vouchers", __name__, url_prefix="/api/admin")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return {}
    return data


def _is_multipart() -> bool:
    return request.mimetype == "multipart/form-data"


def redeem_path(voucher_id: str) -> str:
    return f"/redeem.html?v={voucher_id}"


@vouchers_bp.post("/voucher")
@require_admin
def create_voucher_route():
    """
    Register a purchase.

    Accepts JSON {total, note?, qrDataUrl?} or multipart form fields
    total, note and an optional qrImage file.

    Returns the voucher, the redeem link and the QR image to print.
    """
    try:
        if _is_multipart():
            total = request.form.get("total")
            note = request.form.get("note")
            upload = request.files.get("qrImage")
            qr_data_url = qr_service.file_to_data_url(upload) if upload and upload.filename else None
        else:
            data = _json_body()
            total = data.get("total")
            note = data.get("note")
            qr_data_url = data.get("qrDataUrl") or None

        voucher = voucher_service.create_voucher(
            total,
            note=note,
            qr_data_url=qr_data_url,
            request_meta=request_meta(),
        )

        redeem_url = redeem_path(voucher.id)
        redeem_full_url = request.host_url.rstrip("/") + redeem_url
        return jsonify({
            "ok": True,
            "voucher": voucher.to_dict(),
            "redeemUrl": redeem_url,
            "redeemFullUrl": redeem_full_url,
            "qrSource": voucher.qr_source,
            "qrDataUrl": voucher.qr_data_url or qr_service.qr_data_url_for(redeem_full_url),
        }), 201

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Voucher creation failed")
        return internal_error_response()


@vouchers_bp.get("/voucher/<voucher_id>")
@require_admin
def get_voucher_route(voucher_id: str):
    """Voucher detail with low-balance warning, QR image and audit history."""
    try:
        voucher = voucher_service.get_voucher(voucher_id)
        return jsonify({
            "ok": True,
            "voucher": voucher.to_dict(),
            "warning": voucher_service.warning_for(voucher.remain),
            "qrSource": voucher.qr_source,
            "qrDataUrl": qr_service.qr_for_voucher(voucher),
            "redeemUrl": redeem_path(voucher.id),
            "logs": voucher_logs(voucher.id),
        }), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Voucher lookup failed")
        return internal_error_response()


@vouchers_bp.put("/voucher/<voucher_id>")
@require_admin
def update_voucher_route(voucher_id: str):
    """
    Partial update: note, status ("active"/"disabled") and remain.

    Setting remain is an audited adjustment and creates no usage record.
    """
    try:
        voucher = voucher_service.update_voucher(voucher_id, _json_body(), request_meta())
        return jsonify({"ok": True, "voucher": voucher.to_dict()}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Voucher update failed")
        return internal_error_response()


@vouchers_bp.delete("/voucher/<voucher_id>")
@require_admin
def disable_voucher_route(voucher_id: str):
    try:
        voucher = voucher_service.disable_voucher(voucher_id, request_meta())
        return jsonify({"ok": True, "voucher": voucher.to_dict()}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Voucher disable failed")
        return internal_error_response()


@vouchers_bp.post("/voucher/<voucher_id>/use")
@require_admin
def use_voucher_route(voucher_id: str):
    """Manual usage entry (source=manual). 409 when the voucher cannot be used."""
    try:
        result = usage_service.record_usage(voucher_id, SOURCE_MANUAL, request_meta())
        return jsonify({"ok": True, **result.to_dict()}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Manual usage failed")
        return internal_error_response()


@vouchers_bp.post("/voucher/<voucher_id>/manual-qr")
@require_admin
def manual_qr_route(voucher_id: str):
    """Replace the voucher's QR with an uploaded image (JSON qrDataUrl or multipart qrImage)."""
    try:
        if _is_multipart():
            upload = request.files.get("qrImage")
            if upload is None or not upload.filename:
                raise ValidationError("qrImage file required")
            qr_data_url = qr_service.file_to_data_url(upload)
        else:
            qr_data_url = _json_body().get("qrDataUrl")
            if not qr_data_url:
                raise ValidationError("qrDataUrl required")

        voucher = voucher_service.set_manual_qr(voucher_id, qr_data_url, request_meta())
        return jsonify({
            "ok": True,
            "voucher": voucher.to_dict(),
            "qrSource": voucher.qr_source,
            "qrDataUrl": voucher.qr_data_url,
        }), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Manual QR upload failed")
        return internal_error_response()


@vouchers_bp.get("/vouchers")
@require_admin
def list_vouchers_route():
    """
    Voucher history.

    Query params:
    - q: substring of id or note (case-insensitive)
    - status: active | disabled
    - page, pageSize
    """
    try:
        result = voucher_service.list_vouchers(
            q=request.args.get("q"),
            status=request.args.get("status"),
            page=request.args.get("page"),
            page_size=request.args.get("pageSize"),
        )
        return jsonify({"ok": True, **result}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Voucher listing failed")
        return internal_error_response()
