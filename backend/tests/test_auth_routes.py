"""
Admin authentication and request gate tests.

Verifies:
- Login sets an HttpOnly session cookie and returns the CSRF token
- Bad credentials return 401; missing fields 400
- The 6th attempt inside the window returns 429 with Retry-After
- Protected endpoints return 401 without a session
- State-changing endpoints return 403 without a matching CSRF token
"""

import pytest

from parking_app.extensions import WRITE_QUEUE_KEY
from parking_app.models import ADMIN_LOGIN, ADMIN_LOGOUT

from .conftest import ADMIN_PASSWORD, ADMIN_USERNAME, login, make_app


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestLogin:
    def test_login_success(self, client):
        resp = login(client)
        assert resp.status_code == 200

        data = resp.get_json()
        assert data["username"] == ADMIN_USERNAME
        assert len(data["csrfToken"]) == 64
        assert data["expiresAt"].endswith("Z")
        assert "sessionId" not in data

        cookie = resp.headers["Set-Cookie"]
        assert cookie.startswith("pc_admin_session=")
        assert "HttpOnly" in cookie
        assert "SameSite=Lax" in cookie

    def test_wrong_password(self, client):
        resp = login(client, password="wrong-password")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Unauthorized"

    def test_wrong_username(self, client):
        resp = login(client, username="root")
        assert resp.status_code == 401

    @pytest.mark.parametrize("body", [{}, {"username": ADMIN_USERNAME}, {"password": ADMIN_PASSWORD}, {"username": 1, "password": 2}])
    def test_missing_fields(self, client, body):
        resp = client.post("/api/admin/login", json=body)
        assert resp.status_code == 400

    def test_attempts_are_audited(self, app, client):
        login(client, password="nope")
        login(client)

        with app.app_context():
            from parking_app.services.voucher_store import current_store
            entries = [e for e in current_store().read_audit() if e.type == ADMIN_LOGIN]
        assert [e.meta["success"] for e in entries] == [False, True]
        assert entries[0].ip == "127.0.0.1"

    def test_sixth_attempt_rate_limited(self, client):
        for _ in range(5):
            assert login(client, password="nope").status_code == 401

        resp = login(client)
        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) > 0
        assert resp.get_json()["retryAfterSeconds"] > 0

    def test_success_resets_counter(self, client):
        for _ in range(4):
            login(client, password="nope")
        assert login(client).status_code == 200
        for _ in range(4):
            login(client, password="nope")
        assert login(client).status_code == 200

    def test_rate_limit_is_per_ip(self, client):
        for _ in range(5):
            login(client, password="nope")
        other = client.post(
            "/api/admin/login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
            environ_base={"REMOTE_ADDR": "10.1.2.3"},
        )
        assert other.status_code == 200

    def test_logout(self, app, client, csrf):
        resp = client.post("/api/admin/logout", headers=csrf)
        assert resp.status_code == 200
        assert client.get("/api/admin/session").status_code == 401

        with app.app_context():
            from parking_app.services.voucher_store import current_store
            assert current_store().read_audit()[-1].type == ADMIN_LOGOUT

    def test_session_probe(self, client, csrf):
        resp = client.get("/api/admin/session")
        assert resp.status_code == 200
        assert resp.get_json()["csrfToken"] == csrf["X-CSRF-Token"]

    def test_password_hash_config(self):
        from parking_app.services.auth_service import hash_password

        app = make_app(ADMIN_PASSWORD_HASH=hash_password("Another#Pass1", rounds=4))
        client = app.test_client()
        assert login(client, password="Another#Pass1").status_code == 200
        assert login(client).status_code == 401
        assert "ADMIN_PASSWORD" not in app.config
        app.extensions[WRITE_QUEUE_KEY].shutdown()


class TestSessionExpiry:
    def test_expired_session_rejected(self, app, client, csrf):
        from datetime import timedelta
        from parking_app.services.session_service import current_session_store

        with app.app_context():
            sessions = current_session_store()
            start = sessions._clock()
            sessions._clock = lambda: start + timedelta(hours=9)

        assert client.get("/api/admin/session").status_code == 401


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/admin/logout"),
            ("GET", "/api/admin/session"),
            ("POST", "/api/admin/voucher"),
            ("GET", "/api/admin/voucher/VCH_20260101_ABCDEF"),
            ("PUT", "/api/admin/voucher/VCH_20260101_ABCDEF"),
            ("DELETE", "/api/admin/voucher/VCH_20260101_ABCDEF"),
            ("POST", "/api/admin/voucher/VCH_20260101_ABCDEF/use"),
            ("POST", "/api/admin/voucher/VCH_20260101_ABCDEF/manual-qr"),
            ("GET", "/api/admin/vouchers"),
            ("GET", "/api/admin/stats"),
            ("GET", "/api/admin/usages"),
            ("GET", "/api/admin/logs"),
            ("GET", "/api/admin/export"),
            ("GET", "/api/admin/usages/export"),
            ("GET", "/api/voucher/VCH_20260101_ABCDEF"),
            ("POST", "/api/voucher/VCH_20260101_ABCDEF/display"),
            ("POST", "/api/voucher/VCH_20260101_ABCDEF/confirm"),
        ],
    )
    def test_requires_session(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_forged_cookie_rejected(self, client):
        client.set_cookie("pc_admin_session", "f" * 64)
        assert client.get("/api/admin/vouchers").status_code == 401


# =============================================================================
# CSRF - 403
# =============================================================================


class TestCsrf:
    def test_missing_token(self, client, csrf):
        resp = client.post("/api/admin/voucher", json={"total": 5})
        assert resp.status_code == 403

    def test_wrong_token(self, client, csrf):
        resp = client.post("/api/admin/voucher", json={"total": 5}, headers={"X-CSRF-Token": "0" * 64})
        assert resp.status_code == 403

    def test_reads_do_not_need_token(self, client, csrf):
        assert client.get("/api/admin/vouchers").status_code == 200

    def test_token_from_other_session_rejected(self, app, client, csrf):
        other = app.test_client()
        other_token = login(other).get_json()["csrfToken"]
        resp = client.post("/api/admin/voucher", json={"total": 5}, headers={"X-CSRF-Token": other_token})
        assert resp.status_code == 403
