# Overview: Request gate decorators for API routes (admin session, CSRF, webhook key).

import secrets
from functools import wraps

from flask import current_app, g, request

from .errors import AuthenticationError, AuthorizationError, ServiceUnavailable, error_response
from .models import RequestMeta
from .services.session_service import current_session_store


SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
CSRF_HEADER = "X-CSRF-Token"
WEBHOOK_KEY_HEADER = "X-Webhook-Key"


def request_meta() -> RequestMeta:
    """Requester metadata for audit entries (IP after ProxyFix, user agent)."""
    return RequestMeta(
        ip=request.remote_addr,
        ua=request.headers.get("User-Agent", ""),
    )


def session_cookie_value() -> str | None:
    return request.cookies.get(current_app.config["SESSION_COOKIE_NAME_ADMIN"])


def require_admin(f):
    """
    Require a live admin session; for state-changing methods also require
    the session's CSRF token in the X-CSRF-Token header.

    Sets:
    - g.admin_session: the AdminSession

    SECURITY: Returns 401 when the cookie is missing, unknown or expired
    (expiry is checked lazily here) and 403 when the CSRF token is
    missing or does not match. Routine failures are not audited.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        session = current_session_store().get(session_cookie_value())
        if session is None:
            return error_response(AuthenticationError("Login required"))

        if request.method not in SAFE_METHODS:
            supplied = request.headers.get(CSRF_HEADER, "")
            if not supplied or not secrets.compare_digest(supplied.encode("utf-8"), session.csrf_token.encode("utf-8")):
                return error_response(AuthorizationError("Invalid or missing CSRF token"))

        g.admin_session = session
        return f(*args, **kwargs)

    return decorated_function


def require_webhook_key(f):
    """
    Shared-secret gate for the property-management system.

    Key is read from the X-Webhook-Key header or a "key" field in the JSON
    body. Sessions and CSRF do not apply to this caller class.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("WEBHOOK_SECRET")
        if not expected:
            return error_response(ServiceUnavailable("Webhook is not configured"))

        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        supplied = request.headers.get(WEBHOOK_KEY_HEADER) or body.get("key") or ""
        if not isinstance(supplied, str) or not secrets.compare_digest(
            supplied.encode("utf-8"), expected.encode("utf-8")
        ):
            return error_response(AuthenticationError("Invalid webhook key"))

        return f(*args, **kwargs)

    return decorated_function
