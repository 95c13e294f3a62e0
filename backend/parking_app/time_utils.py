from __future__ import annotations

import re
from datetime import datetime, time, timezone
from typing import Optional


_BARE_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime; every stored timestamp uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Read a wire timestamp ("2026-03-15T09:30:00.000Z", an offset form, or a
    naive value taken as UTC) into a naive UTC datetime.

    Blank input gives None; malformed input raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.replace(tzinfo=None)


def parse_range_bound(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a date-range filter bound.

    A bare "YYYY-MM-DD" end bound is expanded to the last microsecond of that day so
    the range stays inclusive; a bare start bound means midnight.
    """
    if value is None or not value.strip():
        return None
    s = value.strip()
    if _BARE_DATE.match(s):
        day = datetime.strptime(s, "%Y-%m-%d")
        if end_of_day:
            return datetime.combine(day.date(), time.max)
        return day
    return parse_iso_datetime(s)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Wire form of a timestamp: UTC, millisecond precision, trailing "Z"."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat(timespec="milliseconds") + "Z"


def date_key(dt: datetime) -> str:
    """'YYYY-MM-DD' prefix of the UTC timestamp, used for date bucketing."""
    return to_utc_z(dt)[:10]
