# Overview: Voucher Registry; creation, lookup, listing and admin edits of vouchers.

"""
Voucher Registry

Every mutation here (create, update, disable, QR upload) runs on the same
write queue as the Usage Recorder, re-reading the store inside the task.
Vouchers are never deleted; disable() is the soft end of the lifecycle.

AUDIT:
- CREATE    meta: total, note, qrSource
- ADJUST    meta: before, after (+ other changed fields) when remain is set
- UPDATE    meta: changes {field: [old, new]} for note/status-only edits
- DISABLE   meta: before (previous status)
- UPLOAD_QR meta: bytes

Admin remain adjustments never create usage records, so after an adjustment
the usage count no longer equals total - remain. That is intended:
reconciliation edits do not fabricate usage.
"""

from __future__ import annotations

import math
import re

from flask import current_app

from ..errors import NotFound, ValidationError
from ..models import (
    ADJUST, CREATE, DISABLE, UPDATE, UPLOAD_QR,
    QR_SOURCE_AUTO, QR_SOURCE_MANUAL, STATUS_ACTIVE, STATUS_DISABLED, VOUCHER_STATUSES,
    RequestMeta, Voucher,
)
from ..pagination import paginate, parse_page_args
from ..time_utils import utcnow
from .audit_service import build_entry
from .identifier_service import new_voucher_id
from .qr_service import validate_data_url
from .voucher_store import current_store
from .write_queue import current_write_queue


DEFAULT_PAGE_SIZE = 10

# ASCII digits with at most one leading minus sign
_INTEGER = re.compile(r"-?\d+", re.ASCII)

# Low-balance warning thresholds shown next to the voucher
WARN_SEVERE_AT = 3
WARN_AT = 10
WARNING_TEXT = "停车券次数即将用尽，请尽快购买！"


def parse_count(value, field: str) -> int:
    """
    Strict non-negative integer coercion for counts coming off the wire.

    Accepts ints, integral floats and plain digit strings. Rejects booleans,
    fractions, NaN/inf, scientific notation and negatives.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError(f"{field} must be a finite integer")
        result = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not _INTEGER.fullmatch(stripped):
            raise ValidationError(f"{field} must be an integer")
        result = int(stripped)
    else:
        raise ValidationError(f"{field} must be an integer")
    if result < 0:
        raise ValidationError(f"{field} must not be negative")
    return result


def clean_note(value) -> str:
    if value is None:
        return ""
    limit = current_app.config.get("NOTE_MAX_LENGTH", 200)
    return str(value).strip()[:limit]


def _load_existing(vouchers: dict[str, Voucher], voucher_id: str) -> Voucher:
    voucher = vouchers.get(voucher_id)
    if voucher is None:
        raise NotFound(f"Voucher {voucher_id} not found")
    return voucher


def create_voucher(
    total,
    note: str | None = None,
    qr_data_url: str | None = None,
    request_meta: RequestMeta | None = None,
) -> Voucher:
    """
    Register a purchase of `total` uses.

    qr_data_url, when given, is an admin-uploaded QR image (qrSource=manual);
    otherwise the QR is derived from the voucher id on demand (qrSource=auto).
    """
    total = parse_count(total, "total")
    if total <= 0:
        raise ValidationError("total must be a positive integer")
    note = clean_note(note)
    if qr_data_url:
        qr_data_url = validate_data_url(qr_data_url)

    def _create() -> Voucher:
        store = current_store()
        vouchers = store.load_vouchers()
        now = utcnow()
        voucher = Voucher(
            id=new_voucher_id(now, taken=vouchers),
            seq=max((v.seq for v in vouchers.values()), default=0) + 1,
            total=total,
            remain=total,
            created_at=now,
            status=STATUS_ACTIVE,
            note=note,
            qr_source=QR_SOURCE_MANUAL if qr_data_url else QR_SOURCE_AUTO,
            qr_data_url=qr_data_url or None,
        )
        vouchers[voucher.id] = voucher
        store.commit(vouchers, audit=[build_entry(
            CREATE,
            voucher_id=voucher.id,
            meta={"total": total, "note": note, "qrSource": voucher.qr_source},
            request_meta=request_meta,
            ts=now,
        )])
        return voucher.copy()

    return current_write_queue().run(_create)


def get_voucher(voucher_id: str) -> Voucher:
    return _load_existing(current_store().load_vouchers(), voucher_id)


def update_voucher(voucher_id: str, data: dict, request_meta: RequestMeta | None = None) -> Voucher:
    """
    Partial update of note / status / remain. Unspecified fields are untouched.

    - note: truncated to NOTE_MAX_LENGTH
    - status: only "active" / "disabled"; any other value is ignored
    - remain: integer in [0, total]; anything else raises ValidationError
    """
    data = data or {}
    changes_requested: dict = {}
    if "note" in data:
        changes_requested["note"] = clean_note(data["note"])
    if data.get("status") in VOUCHER_STATUSES:
        changes_requested["status"] = data["status"]
    if "remain" in data:
        changes_requested["remain"] = parse_count(data["remain"], "remain")

    def _update() -> Voucher:
        store = current_store()
        vouchers = store.load_vouchers()
        voucher = _load_existing(vouchers, voucher_id)

        new_remain = changes_requested.get("remain")
        if new_remain is not None and new_remain > voucher.total:
            raise ValidationError(f"remain must be between 0 and {voucher.total}")

        changes = {}
        for field, value in changes_requested.items():
            old = getattr(voucher, field)
            if old != value:
                changes[field] = [old, value]
                setattr(voucher, field, value)

        if not changes:
            return voucher.copy()

        if "remain" in changes:
            before, after = changes.pop("remain")
            meta = {"before": before, "after": after}
            if changes:
                meta["changes"] = changes
            entry = build_entry(ADJUST, voucher.id, meta, request_meta)
        else:
            entry = build_entry(UPDATE, voucher.id, {"changes": changes}, request_meta)
        store.commit(vouchers, audit=[entry])
        return voucher.copy()

    return current_write_queue().run(_update)


def disable_voucher(voucher_id: str, request_meta: RequestMeta | None = None) -> Voucher:
    """Soft-disable. Usage attempts re-read status, so in-flight calls need no tracking."""
    def _disable() -> Voucher:
        store = current_store()
        vouchers = store.load_vouchers()
        voucher = _load_existing(vouchers, voucher_id)
        before = voucher.status
        voucher.status = STATUS_DISABLED
        store.commit(vouchers, audit=[build_entry(DISABLE, voucher.id, {"before": before}, request_meta)])
        return voucher.copy()

    return current_write_queue().run(_disable)


def enable_voucher(voucher_id: str, request_meta: RequestMeta | None = None) -> Voucher:
    return update_voucher(voucher_id, {"status": STATUS_ACTIVE}, request_meta)


def set_manual_qr(voucher_id: str, qr_data_url: str, request_meta: RequestMeta | None = None) -> Voucher:
    """Replace the auto-derived QR with an uploaded image."""
    qr_data_url = validate_data_url(qr_data_url)

    def _upload() -> Voucher:
        store = current_store()
        vouchers = store.load_vouchers()
        voucher = _load_existing(vouchers, voucher_id)
        voucher.qr_source = QR_SOURCE_MANUAL
        voucher.qr_data_url = qr_data_url
        store.commit(vouchers, audit=[build_entry(UPLOAD_QR, voucher.id, {"bytes": len(qr_data_url)}, request_meta)])
        return voucher.copy()

    return current_write_queue().run(_upload)


def warning_for(remain: int) -> dict:
    if remain <= WARN_SEVERE_AT:
        level = "severe"
    elif remain <= WARN_AT:
        level = "warn"
    else:
        level = "ok"
    return {"level": level, "text": WARNING_TEXT if level != "ok" else ""}


def summarize(vouchers) -> dict:
    """Totals over a voucher collection. totalUsed is recomputed, never tracked."""
    total_issued = sum(v.total for v in vouchers)
    total_remain = sum(v.remain for v in vouchers)
    return {
        "totalIssued": total_issued,
        "totalUsed": total_issued - total_remain,
        "totalRemain": total_remain,
    }


def list_vouchers(q: str | None = None, status: str | None = None, page=1, page_size=None) -> dict:
    """
    Filtered, paginated voucher history.

    - q: case-insensitive substring of id or note
    - status: exact match; unknown values match nothing
    - order: createdAt desc, then creation sequence desc
    - summary covers the full filtered set, not just the page
    """
    page, page_size = parse_page_args(page, page_size, DEFAULT_PAGE_SIZE)
    needle = (q or "").strip().lower()

    matched = []
    for voucher in current_store().load_vouchers().values():
        if status and voucher.status != status:
            continue
        if needle and needle not in voucher.id.lower() and needle not in voucher.note.lower():
            continue
        matched.append(voucher)

    matched.sort(key=lambda v: (v.created_at, v.seq), reverse=True)
    items, pagination = paginate(matched, page, page_size)
    return {
        "items": [v.to_dict() for v in items],
        "pagination": pagination,
        "summary": {"count": len(matched), **summarize(matched)},
    }
