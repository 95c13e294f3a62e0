# Overview: Error taxonomy shared by services and routes, plus the JSON error renderer.

from __future__ import annotations

import logging

from flask import jsonify


logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base for caller-facing failures. Rendered as {"error", "message"}."""

    status_code = 500
    error = "Error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return cls.error

    @property
    def message(self) -> str:
        return str(self)

    def extra(self) -> dict:
        return {}


class ValidationError(ServiceError):
    """400-level input problem. Raised before any mutation is attempted."""

    status_code = 400
    error = "ValidationError"


class AuthenticationError(ServiceError):
    """401: not logged in, expired session, bad credentials or bad webhook key."""

    status_code = 401
    error = "Unauthorized"


class AuthorizationError(ServiceError):
    """403: authenticated but the CSRF token is missing or does not match."""

    status_code = 403
    error = "Forbidden"


class NotFound(ServiceError):
    status_code = 404
    error = "NotFound"


class UsageRejected(ServiceError):
    """
    409: the expected, non-exceptional refusal of a usage event.

    reason is one of NOT_FOUND, DISABLED, EXHAUSTED, NO_ACTIVE_VOUCHER.
    """

    status_code = 409
    error = "UsageRejected"

    NOT_FOUND = "not_found"
    DISABLED = "disabled"
    EXHAUSTED = "exhausted"
    NO_ACTIVE_VOUCHER = "no_active_voucher"

    _MESSAGES = {
        NOT_FOUND: "Voucher not found",
        DISABLED: "Voucher is disabled",
        EXHAUSTED: "Voucher has no remaining uses",
        NO_ACTIVE_VOUCHER: "No active voucher with remaining uses",
    }

    def __init__(self, reason: str, voucher_id: str | None = None):
        self.reason = reason
        self.voucher_id = voucher_id
        super().__init__(self._MESSAGES.get(reason, "Usage rejected"))

    def extra(self) -> dict:
        return {"reason": self.reason, "voucherId": self.voucher_id}


class RateLimited(ServiceError):
    status_code = 429
    error = "RateLimited"

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__("Too many login attempts, try again later")

    def extra(self) -> dict:
        return {"retryAfterSeconds": self.retry_after_seconds}


class ServiceUnavailable(ServiceError):
    """503: a feature is switched off by configuration (e.g. webhook without a secret)."""

    status_code = 503
    error = "ServiceUnavailable"


class StorageError(ServiceError):
    """Unexpected persistence failure. Message is never shown to callers."""

    status_code = 500
    error = "StorageError"


# Rejections that are part of normal operation and must not be logged as system errors
EXPECTED_ERRORS = (ValidationError, NotFound, UsageRejected)


def error_response(exc: ServiceError):
    if isinstance(exc, StorageError):
        logger.error("Storage failure: %s", exc, exc_info=exc)
        body = {"error": exc.error, "message": "Internal server error"}
    else:
        body = {"error": exc.error, "message": exc.message}
        body.update(exc.extra())
    response = jsonify(body)
    response.status_code = exc.status_code
    if isinstance(exc, RateLimited):
        response.headers["Retry-After"] = str(exc.retry_after_seconds)
    return response


def internal_error_response():
    """Body for an unexpected failure; the cause is only in the server log."""
    response = jsonify({"error": "InternalError", "message": "Internal server error"})
    response.status_code = 500
    return response
