# Overview: Flask API route the property-management system calls on each parking exit.

# backend/parking_app/routes/webhooks.py
"""
Property-management webhook

POST /api/webhook/use  {voucherId?, key?}

- With voucherId: consume one use of that voucher
- Without: consume one use of the oldest usable voucher
- Authenticated by the shared secret only (X-Webhook-Key header or "key"
  body field); no session, no CSRF
- Rejections come back as 409 with a machine-readable reason
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_webhook_key, request_meta
from ..errors import ServiceError, ValidationError, error_response, internal_error_response
from ..models import SOURCE_API
from ..services import usage_service


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhook")


@webhooks_bp.post("/use")
@require_webhook_key
def webhook_use_route():
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        voucher_id = data.get("voucherId") or None
        if voucher_id is not None and not isinstance(voucher_id, str):
            raise ValidationError("voucherId must be a string")

        result = usage_service.record_usage(voucher_id, SOURCE_API, request_meta())
        current_app.logger.info(
            "Webhook usage %s on %s (remain %d)",
            result.usage.id, result.voucher.id, result.voucher.remain,
        )
        return jsonify({"ok": True, **result.to_dict()}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Webhook usage failed")
        return internal_error_response()
