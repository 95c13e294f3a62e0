# Overview: Flask API routes for admin login, logout and the session probe.

# backend/parking_app/routes/auth.py
"""
Admin Authentication API routes

SECURITY FEATURES:
- Login rate limit per client IP (5 attempts per 15 minutes)
- bcrypt password verification
- Session id in an HttpOnly, SameSite=Lax cookie; CSRF token returned in the body
- Every login attempt (success or failure) is audited
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_admin, request_meta, session_cookie_value
from ..errors import AuthenticationError, ServiceError, ValidationError, error_response, internal_error_response
from ..models import ADMIN_LOGIN, ADMIN_LOGOUT
from ..services import audit_service
from ..services.auth_service import verify_admin_credentials
from ..services.login_throttle_service import current_login_limiter
from ..services.session_service import current_session_store


auth_bp = Blueprint("auth", __name__, url_prefix="/api/admin")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate the admin and open a session.

    Returns the session view (username, csrfToken, expiry) and sets the
    session cookie. The CSRF token must be sent as X-CSRF-Token on every
    state-changing admin request.

    SECURITY:
    - The attempt is counted before credentials are checked, so the 6th
      attempt inside the window is refused with 429 regardless of input
    - A successful login clears the counter for that IP
    """
    try:
        meta = request_meta()
        limiter_key = meta.ip or "unknown"
        current_login_limiter().hit(limiter_key)

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        username = data.get("username")
        password = data.get("password")
        if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
            raise ValidationError("username and password required")

        if not verify_admin_credentials(username.strip(), password):
            current_app.logger.warning("Failed admin login for %r from %s", username, meta.ip)
            audit_service.record_event(
                ADMIN_LOGIN,
                meta={"success": False, "username": username},
                request_meta=meta,
            )
            raise AuthenticationError("Invalid username or password")

        current_login_limiter().reset(limiter_key)
        session = current_session_store().create(username.strip())
        current_app.logger.info("Admin %s logged in from %s", session.username, meta.ip)
        audit_service.record_event(
            ADMIN_LOGIN,
            meta={"success": True, "username": session.username},
            request_meta=meta,
        )

        response = jsonify({"ok": True, **session.to_dict()})
        response.set_cookie(
            current_app.config["SESSION_COOKIE_NAME_ADMIN"],
            session.session_id,
            max_age=current_app.config["SESSION_TTL_SECONDS"],
            httponly=True,
            samesite="Lax",
            secure=current_app.config["SESSION_COOKIE_SECURE"],
            path="/",
        )
        return response, 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Admin login failed")
        return internal_error_response()


@auth_bp.post("/logout")
@require_admin
def logout_route():
    """End the current session and clear the cookie."""
    try:
        current_session_store().delete(session_cookie_value())
        audit_service.record_event(
            ADMIN_LOGOUT,
            meta={"username": g.admin_session.username},
            request_meta=request_meta(),
        )
        response = jsonify({"ok": True})
        response.delete_cookie(current_app.config["SESSION_COOKIE_NAME_ADMIN"], path="/")
        return response, 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Admin logout failed")
        return internal_error_response()


@auth_bp.get("/session")
@require_admin
def session_route():
    """Session probe used by the admin UI on page load."""
    return jsonify({"ok": True, **g.admin_session.to_dict()}), 200
