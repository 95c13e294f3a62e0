# Overview: Usage Recorder; the single code path that decrements a voucher's remaining count.

"""
Usage Recorder

WHY: `remain` must drop exactly once per valid usage event and never go
negative, even when the webhook and the admin UI report usage at the same
moment. The whole read-check-decrement-append sequence runs as one task on
the write queue, so it is indivisible with respect to every other mutation.

On success (one serialized task):
- remain -= 1, lastUsedAt = now
- one UsageRecord appended to the usage log
- one audit entry appended (WEBHOOK_USE for source=api, MANUAL_USE for
  source=manual, or CONFIRM for the redeem-page confirmation) with
  before/after remain and the usage id

On rejection nothing is written: UsageRejected is raised with reason
not_found / disabled / exhausted / no_active_voucher.
The three writes go to the store in one commit(); a StorageError part-way
leaves remain, the usage log and the audit log as they were.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import UsageRejected, ValidationError
from ..models import (
    CONFIRM, MANUAL_USE, WEBHOOK_USE, SOURCE_API, STATUS_ACTIVE, USAGE_SOURCES,
    RequestMeta, UsageRecord, Voucher,
)
from ..time_utils import utcnow
from .audit_service import build_entry
from .identifier_service import new_usage_id
from .voucher_store import current_store
from .write_queue import current_write_queue


USAGE_AUDIT_TYPES = (WEBHOOK_USE, MANUAL_USE, CONFIRM)


@dataclass(frozen=True)
class UsageResult:
    usage: UsageRecord
    voucher: Voucher

    def to_dict(self) -> dict:
        return {
            "usage": self.usage.to_dict(),
            "voucher": self.voucher.to_dict(),
            "remain": self.voucher.remain,
        }


def select_usable_voucher(vouchers: dict[str, Voucher]) -> Voucher | None:
    """
    First voucher (creation order) that is active with remain > 0.

    Oldest purchase is consumed first; the result is deterministic for a
    given store snapshot because stores return vouchers ordered by seq.
    """
    for voucher in sorted(vouchers.values(), key=lambda v: v.seq):
        if voucher.is_usable:
            return voucher
    return None


def check_usable(voucher: Voucher | None, voucher_id: str | None) -> Voucher:
    if voucher is None:
        if voucher_id is None:
            raise UsageRejected(UsageRejected.NO_ACTIVE_VOUCHER)
        raise UsageRejected(UsageRejected.NOT_FOUND, voucher_id)
    if not voucher.is_usable:
        reason = UsageRejected.EXHAUSTED if voucher.status == STATUS_ACTIVE else UsageRejected.DISABLED
        raise UsageRejected(reason, voucher.id)
    return voucher


def record_usage(
    voucher_id: str | None,
    source: str,
    request_meta: RequestMeta | None = None,
    audit_type: str | None = None,
) -> UsageResult:
    """
    Atomically validate and consume one use of a voucher.

    voucher_id=None selects the first usable voucher (webhook fallback);
    the selection happens inside the serialized task.

    Raises:
    - ValidationError: unknown source or audit type (nothing queued)
    - UsageRejected: voucher missing, disabled or exhausted
    - StorageError: persistence failure
    """
    if source not in USAGE_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(USAGE_SOURCES)}")
    if audit_type is None:
        audit_type = WEBHOOK_USE if source == SOURCE_API else MANUAL_USE
    if audit_type not in USAGE_AUDIT_TYPES:
        raise ValidationError(f"Unsupported usage audit type: {audit_type}")

    def _consume() -> UsageResult:
        store = current_store()
        vouchers = store.load_vouchers()

        if voucher_id is None:
            voucher = check_usable(select_usable_voucher(vouchers), None)
        else:
            voucher = check_usable(vouchers.get(voucher_id), voucher_id)

        now = utcnow()
        before = voucher.remain
        voucher.remain = before - 1
        voucher.last_used_at = now

        usage = UsageRecord(
            id=new_usage_id(now),
            voucher_id=voucher.id,
            used_at=now,
            source=source,
        )

        store.commit(vouchers, usages=[usage], audit=[build_entry(
            audit_type,
            voucher_id=voucher.id,
            meta={"before": before, "after": voucher.remain, "usageId": usage.id, "source": source},
            request_meta=request_meta,
            ts=now,
        )])
        return UsageResult(usage=usage, voucher=voucher.copy())

    return current_write_queue().run(_consume)
