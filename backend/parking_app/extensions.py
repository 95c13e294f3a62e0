# Overview: Flask extension instances plus the per-app components wired by create_app.

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

# Keys under app.extensions for components that are not Flask extensions
STORE_KEY = "parking.voucher_store"
WRITE_QUEUE_KEY = "parking.write_queue"
SESSION_STORE_KEY = "parking.session_store"
LOGIN_LIMITER_KEY = "parking.login_limiter"


def component(key: str):
    """Look up a per-app component registered by create_app."""
    return current_app.extensions[key]
