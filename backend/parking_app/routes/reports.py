# Overview: Flask API routes for dashboard stats, usage/audit queries and CSV exports.

# backend/parking_app/routes/reports.py
from flask import Blueprint, Response, current_app, jsonify, request

from ..decorators import require_admin
from ..errors import ServiceError, error_response, internal_error_response
from ..services import export_service
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/admin")


def _csv_response(body: str, kind: str) -> Response:
    response = Response(body, mimetype="text/csv")
    response.headers["Content-Type"] = "text/csv; charset=utf-8"
    response.headers["Content-Disposition"] = f'attachment; filename="{export_service.export_filename(kind)}"'
    return response


@reports_bp.get("/stats")
@require_admin
def stats_route():
    try:
        return jsonify({"ok": True, **reporting_service.dashboard_stats()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Stats query failed")
        return internal_error_response()


@reports_bp.get("/usages")
@require_admin
def usages_route():
    """
    Usage history.

    Query params:
    - startDate, endDate: YYYY-MM-DD or ISO-8601, inclusive
    - voucherId: substring match
    - page, pageSize
    """
    try:
        result = reporting_service.query_usages(
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
            voucher_id=request.args.get("voucherId"),
            page=request.args.get("page"),
            page_size=request.args.get("pageSize"),
        )
        return jsonify({"ok": True, **result}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Usage query failed")
        return internal_error_response()


@reports_bp.get("/logs")
@require_admin
def logs_route():
    """Audit log, newest first. Filters: type (exact), voucherId (substring)."""
    try:
        result = reporting_service.query_logs(
            event_type=request.args.get("type"),
            voucher_id=request.args.get("voucherId"),
            page=request.args.get("page"),
            page_size=request.args.get("pageSize"),
        )
        return jsonify({"ok": True, **result}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Log query failed")
        return internal_error_response()


@reports_bp.get("/export")
@require_admin
def export_purchases_route():
    try:
        return _csv_response(export_service.purchases_csv(), "purchases")
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Purchase export failed")
        return internal_error_response()


@reports_bp.get("/usages/export")
@require_admin
def export_usages_route():
    try:
        body = export_service.usages_csv(
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
            voucher_id=request.args.get("voucherId"),
        )
        return _csv_response(body, "usages")
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Usage export failed")
        return internal_error_response()
