# Overview: Flask API routes backing the staff redeem page (show QR, then confirm the exit).

# backend/parking_app/routes/redeem.py
"""
Redeem page API

The redeem page is opened from the voucher's link at the exit gate:
1. GET  /api/voucher/<id>          voucher, warning and QR image
2. POST /api/voucher/<id>/display  audit that the QR was shown (DISPLAY)
3. POST /api/voucher/<id>/confirm  staff confirms the exit; one use is
                                   consumed (source=manual, CONFIRM audit)

Displaying never consumes a use.
"""

from flask import Blueprint, current_app, jsonify

from ..decorators import require_admin, request_meta
from ..errors import ServiceError, error_response, internal_error_response
from ..models import CONFIRM, DISPLAY, SOURCE_MANUAL
from ..services import audit_service
from ..services import qr_service
from ..services import usage_service
from ..services import voucher_service


redeem_bp = Blueprint("redeem", __name__, url_prefix="/api/voucher")


@redeem_bp.get("/<voucher_id>")
@require_admin
def redeem_view_route(voucher_id: str):
    try:
        voucher = voucher_service.get_voucher(voucher_id)
        return jsonify({
            "ok": True,
            "voucher": voucher.to_dict(),
            "warning": voucher_service.warning_for(voucher.remain),
            "qrSource": voucher.qr_source,
            "qrDataUrl": qr_service.qr_for_voucher(voucher),
        }), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Redeem lookup failed")
        return internal_error_response()


@redeem_bp.post("/<voucher_id>/display")
@require_admin
def redeem_display_route(voucher_id: str):
    """Record that the QR was displayed. Refused when the voucher cannot be used."""
    try:
        voucher = voucher_service.get_voucher(voucher_id)
        usage_service.check_usable(voucher, voucher_id)

        audit_service.record_event(
            DISPLAY,
            voucher_id=voucher.id,
            meta={"remain": voucher.remain},
            request_meta=request_meta(),
        )
        return jsonify({
            "ok": True,
            "voucher": voucher.to_dict(),
            "warning": voucher_service.warning_for(voucher.remain),
        }), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Redeem display failed")
        return internal_error_response()


@redeem_bp.post("/<voucher_id>/confirm")
@require_admin
def redeem_confirm_route(voucher_id: str):
    try:
        result = usage_service.record_usage(
            voucher_id,
            SOURCE_MANUAL,
            request_meta(),
            audit_type=CONFIRM,
        )
        return jsonify({
            "ok": True,
            **result.to_dict(),
            "warning": voucher_service.warning_for(result.voucher.remain),
        }), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Redeem confirm failed")
        return internal_error_response()
