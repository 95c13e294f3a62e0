# Overview: Admin credential checks; bcrypt hashing and verification.

"""
Admin Authentication Service

WHY: The admin UI is the only human entry point. Uses bcrypt for password
hashing; the hash comes from ADMIN_PASSWORD_HASH, or is derived at startup
from ADMIN_PASSWORD in development setups.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Username compared in constant time
- Verification always runs bcrypt, even for an unknown username, so
  response timing does not reveal which part was wrong
"""

import re
import secrets

import bcrypt
from flask import current_app


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter and one digit
    - At least one special character

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[^A-Za-z0-9]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise (including a
    malformed hash).
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def verify_admin_credentials(username: str, password: str) -> bool:
    expected_username = current_app.config["ADMIN_USERNAME"]
    password_hash = current_app.config["ADMIN_PASSWORD_HASH"]

    username_ok = secrets.compare_digest(username.encode('utf-8'), expected_username.encode('utf-8'))
    password_ok = verify_password(password, password_hash)
    return username_ok and password_ok
