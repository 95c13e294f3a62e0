"""
Pytest fixtures for the parking voucher backend tests.

Provides an app per test (in-memory store by default), a test client, an
application context, and helpers for logging in as the admin.
"""

import pytest

from parking_app import create_app
from parking_app.extensions import db, WRITE_QUEUE_KEY
from parking_app.services.voucher_store import current_store


ADMIN_USERNAME = "qzadmin"
ADMIN_PASSWORD = "Qzkj@2026#"
WEBHOOK_SECRET = "test-webhook-secret"


def make_app(**overrides):
    config = {
        "TESTING": True,
        "STORE_BACKEND": "memory",
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "ADMIN_USERNAME": ADMIN_USERNAME,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "ADMIN_PASSWORD_HASH": None,
        "BCRYPT_ROUNDS": 4,
        "WEBHOOK_SECRET": WEBHOOK_SECRET,
        "SESSION_COOKIE_SECURE": False,
        "TRUST_PROXY": False,
    }
    config.update(overrides)
    return create_app(config)


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = make_app()
    yield app
    app.extensions[WRITE_QUEUE_KEY].shutdown()


@pytest.fixture(scope='function')
def sql_app():
    """Application backed by SQLite through Flask-SQLAlchemy."""
    app = make_app(STORE_BACKEND="sql")
    with app.app_context():
        db.create_all()
    yield app
    app.extensions[WRITE_QUEUE_KEY].shutdown()
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def ctx(app):
    """Application context for calling services directly."""
    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def store(ctx):
    return current_store()


def login(client, username=ADMIN_USERNAME, password=ADMIN_PASSWORD):
    return client.post("/api/admin/login", json={"username": username, "password": password})


@pytest.fixture(scope='function')
def csrf(client):
    """Log the test client in; returns headers carrying the CSRF token."""
    resp = login(client)
    assert resp.status_code == 200, resp.get_json()
    return {"X-CSRF-Token": resp.get_json()["csrfToken"]}


@pytest.fixture(scope='function')
def webhook_headers():
    return {"X-Webhook-Key": WEBHOOK_SECRET}


@pytest.fixture(scope='function')
def make_voucher(client, csrf):
    """Create a voucher through the admin API and return its wire dict."""
    def _make(total=5, note="test"):
        resp = client.post("/api/admin/voucher", json={"total": total, "note": note}, headers=csrf)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["voucher"]
    return _make
