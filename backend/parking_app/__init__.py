# backend/parking_app/__init__.py
from datetime import timedelta

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .extensions import (
    db,
    migrate,
    STORE_KEY,
    WRITE_QUEUE_KEY,
    SESSION_STORE_KEY,
    LOGIN_LIMITER_KEY,
)



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # app.logger is the "parking_app" logger, so module loggers propagate to its handler
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Client IP for rate limiting and audit comes from X-Forwarded-For behind one proxy
    if app.config["TRUST_PROXY"]:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    # Development setups supply a plaintext password; only its bcrypt hash is kept
    if not app.config.get("ADMIN_PASSWORD_HASH"):
        from .services.auth_service import hash_password
        app.config["ADMIN_PASSWORD_HASH"] = hash_password(
            app.config["ADMIN_PASSWORD"], rounds=app.config["BCRYPT_ROUNDS"]
        )
        app.logger.info("ADMIN_PASSWORD_HASH not set; derived from ADMIN_PASSWORD")
    app.config.pop("ADMIN_PASSWORD", None)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Per-app components: one store, one serializing queue, in-memory sessions and limiter
    from .services.voucher_store import build_store
    from .services.write_queue import WriteQueue
    from .services.session_service import SessionStore
    from .services.login_throttle_service import LoginRateLimiter

    app.extensions[STORE_KEY] = build_store(app.config)
    app.extensions[WRITE_QUEUE_KEY] = WriteQueue()
    app.extensions[SESSION_STORE_KEY] = SessionStore(
        ttl=timedelta(seconds=app.config["SESSION_TTL_SECONDS"])
    )
    app.extensions[LOGIN_LIMITER_KEY] = LoginRateLimiter(
        max_attempts=app.config["LOGIN_MAX_ATTEMPTS"],
        window=timedelta(seconds=app.config["LOGIN_WINDOW_SECONDS"]),
    )

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.vouchers import vouchers_bp
    from .routes.reports import reports_bp
    from .routes.webhooks import webhooks_bp
    from .routes.redeem import redeem_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(vouchers_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(redeem_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
