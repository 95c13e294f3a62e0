# Overview: In-memory admin session registry with lazy expiry and per-session CSRF tokens.

"""
Admin Session Store

WHY: The admin UI authenticates with a cookie-held session id; every
state-changing request must also echo the session's CSRF token in a header.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes each)
- csrf_token is generated independently of session_id
- Absolute timeout (SESSION_TTL_SECONDS), no idle extension
- Lazy expiry: an expired session is dropped on first access
- Process memory only: sessions do not survive a restart and are not
  shared across processes

One SessionStore is created per app and injected via app.extensions;
tests construct their own with a controllable clock.
"""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from ..extensions import component, SESSION_STORE_KEY
from ..time_utils import to_utc_z, utcnow


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    """
    return secrets.token_hex(32)


@dataclass(frozen=True)
class AdminSession:
    session_id: str
    username: str
    csrf_token: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict:
        """Client view; never includes the session id (that lives in the cookie)."""
        return {
            "username": self.username,
            "csrfToken": self.csrf_token,
            "createdAt": to_utc_z(self.created_at),
            "expiresAt": to_utc_z(self.expires_at),
        }


class SessionStore:
    def __init__(self, ttl: timedelta, clock: Callable[[], datetime] = utcnow):
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, AdminSession] = {}

    def create(self, username: str) -> AdminSession:
        now = self._clock()
        session = AdminSession(
            session_id=generate_token(),
            username=username,
            csrf_token=generate_token(),
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.set(session)
        return session

    def get(self, session_id: str | None) -> AdminSession | None:
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                del self._sessions[session_id]
                return None
            return session

    def set(self, session: AdminSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def delete(self, session_id: str | None) -> bool:
        if not session_id:
            return False
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def sweep_expired(self) -> int:
        """Drop every expired session. Returns the count removed."""
        now = self._clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def current_session_store() -> SessionStore:
    return component(SESSION_STORE_KEY)
