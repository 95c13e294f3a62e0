# backend/parking_app/routes/system.py
"""
System health endpoint.

Reports whether the voucher store can be read, for load balancers and
deployment checks.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..services.voucher_store import current_store
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_store_health() -> dict:
    """
    Check store connectivity by loading the voucher map.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        vouchers = current_store().load_vouchers()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "backend": current_app.config["STORE_BACKEND"],
                "vouchers": len(vouchers),
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Store health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Store error",
        }


@system_bp.get("/health")
def health():
    store = check_store_health()
    healthy = store["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"store": store},
    }), (200 if healthy else 503)
