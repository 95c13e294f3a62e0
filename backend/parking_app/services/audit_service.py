# Overview: Audit trail helpers; builds entries and appends them through the write queue.

"""
Audit Trail Service

WHY: Every state-changing action is attributable. Entries are immutable and
append-only; the audit log is read only for reporting.

Mutating services build their entry with build_entry() and append it inside
their own serialized task. Actions with no voucher mutation (login, logout,
QR display) use record_event(), which queues the append on its own.
"""

from __future__ import annotations

from ..models import AuditEntry, RequestMeta
from ..time_utils import utcnow
from .voucher_store import current_store
from .write_queue import current_write_queue


def build_entry(
    event_type: str,
    voucher_id: str | None = None,
    meta: dict | None = None,
    request_meta: RequestMeta | None = None,
    ts=None,
) -> AuditEntry:
    request_meta = request_meta or RequestMeta()
    return AuditEntry(
        ts=ts or utcnow(),
        type=event_type,
        voucher_id=voucher_id,
        ip=request_meta.ip,
        ua=request_meta.ua or "",
        meta=dict(meta or {}),
    )


def record_event(
    event_type: str,
    voucher_id: str | None = None,
    meta: dict | None = None,
    request_meta: RequestMeta | None = None,
) -> AuditEntry:
    """
    Append a standalone audit entry (serialized with all other writes).

    Event types used here:
    - ADMIN_LOGIN (meta.success true/false)
    - ADMIN_LOGOUT
    - DISPLAY
    """
    def _append():
        # Stamped on the worker so ts order matches log order
        entry = build_entry(event_type, voucher_id, meta, request_meta)
        current_store().append_audit(entry)
        return entry

    return current_write_queue().run(_append)
