# Overview: Read-only reporting over the voucher store; dashboard stats, usage and audit queries.

"""
Reporting Service

Read-only. Nothing here goes through the write queue: results are a
snapshot as of the read and may trail an in-flight write.

Date bucketing compares the UTC 'YYYY-MM-DD' prefix of each usage
timestamp against today's, so today / this month / this year are
prefix matches on the same key.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta

from ..errors import ValidationError
from ..models import AUDIT_TYPES, STATUS_ACTIVE, AuditEntry, UsageRecord
from ..pagination import paginate, parse_page_args
from ..time_utils import date_key, parse_range_bound, utcnow
from .voucher_service import summarize
from .voucher_store import current_store


DEFAULT_PAGE_SIZE = 20
TREND_DAYS = 7


def parse_date_range(start_date: str | None, end_date: str | None) -> tuple[datetime | None, datetime | None]:
    """
    Inclusive range bounds. A bare end date covers the whole day
    (up to its last microsecond). Malformed input raises ValidationError.
    """
    try:
        start = parse_range_bound(start_date)
        end = parse_range_bound(end_date, end_of_day=True)
    except ValueError:
        raise ValidationError("startDate/endDate must be YYYY-MM-DD or ISO-8601 timestamps")
    if start and end and start > end:
        raise ValidationError("startDate must not be after endDate")
    return start, end


def filter_usages(
    usages: list[UsageRecord],
    start: datetime | None = None,
    end: datetime | None = None,
    voucher_id: str | None = None,
) -> list[UsageRecord]:
    """Apply range + voucher substring filters and sort newest first."""
    needle = (voucher_id or "").strip().lower()
    matched = [
        u for u in reversed(usages)
        if (start is None or u.used_at >= start)
        and (end is None or u.used_at <= end)
        and (not needle or needle in u.voucher_id.lower())
    ]
    matched.sort(key=lambda u: u.used_at, reverse=True)
    return matched


def dashboard_stats(now: datetime | None = None) -> dict:
    """
    Full-store aggregates plus usage buckets.

    recentDays always has TREND_DAYS entries, oldest first, including days
    with zero usages.
    """
    now = now or utcnow()
    store = current_store()
    vouchers = list(store.load_vouchers().values())
    usages = store.read_usages()

    today = date_key(now)
    per_day = Counter(date_key(u.used_at) for u in usages)

    recent_days = []
    for offset in range(TREND_DAYS - 1, -1, -1):
        day = date_key(now - timedelta(days=offset))
        recent_days.append({"date": day, "count": per_day.get(day, 0)})

    active = sum(1 for v in vouchers if v.status == STATUS_ACTIVE)
    return {
        "totalVouchers": len(vouchers),
        "activeVouchers": active,
        "disabledVouchers": len(vouchers) - active,
        **summarize(vouchers),
        "totalUsages": len(usages),
        "todayUsed": per_day.get(today, 0),
        "thisMonthUsed": sum(n for day, n in per_day.items() if day.startswith(today[:7])),
        "thisYearUsed": sum(n for day, n in per_day.items() if day.startswith(today[:4])),
        "recentDays": recent_days,
    }


def query_usages(
    start_date: str | None = None,
    end_date: str | None = None,
    voucher_id: str | None = None,
    page=1,
    page_size=None,
) -> dict:
    page, page_size = parse_page_args(page, page_size, DEFAULT_PAGE_SIZE)
    start, end = parse_date_range(start_date, end_date)
    matched = filter_usages(current_store().read_usages(), start, end, voucher_id)
    items, pagination = paginate(matched, page, page_size)
    return {
        "items": [u.to_dict() for u in items],
        "pagination": pagination,
        "summary": {"totalUsages": len(matched)},
    }


def filter_audit(
    entries: list[AuditEntry],
    event_type: str | None = None,
    voucher_id: str | None = None,
) -> list[AuditEntry]:
    needle = (voucher_id or "").strip().lower()
    matched = [
        e for e in reversed(entries)
        if (not event_type or e.type == event_type)
        and (not needle or needle in (e.voucher_id or "").lower())
    ]
    # Input is reversed first so later appends win ties on equal timestamps
    return sorted(matched, key=lambda e: e.ts, reverse=True)


def query_logs(event_type: str | None = None, voucher_id: str | None = None, page=1, page_size=None) -> dict:
    if event_type and event_type not in AUDIT_TYPES:
        raise ValidationError(f"Unknown log type: {event_type}")
    page, page_size = parse_page_args(page, page_size, DEFAULT_PAGE_SIZE)
    matched = filter_audit(current_store().read_audit(), event_type, voucher_id)
    items, pagination = paginate(matched, page, page_size)
    return {"items": [e.to_dict() for e in items], "pagination": pagination}


def voucher_logs(voucher_id: str) -> list[dict]:
    """Audit entries for one voucher, newest first (exact id match)."""
    entries = [e for e in reversed(current_store().read_audit()) if e.voucher_id == voucher_id]
    entries.sort(key=lambda e: e.ts, reverse=True)
    return [e.to_dict() for e in entries]
