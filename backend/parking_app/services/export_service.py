"""
CSV exports for spreadsheet use.

Both exports start with a UTF-8 byte-order mark so Excel opens the
Chinese headers correctly. Timestamps keep the wire ISO-8601 format.
"""

from __future__ import annotations

import csv
import io

from ..models import SOURCE_API, SOURCE_MANUAL, STATUS_DISABLED
from ..time_utils import to_utc_z, utcnow
from .reporting_service import filter_usages, parse_date_range
from .voucher_store import current_store


BOM = "\ufeff"

PURCHASE_HEADERS = ["记录号", "购买次数", "已用次数", "剩余次数", "状态", "备注", "创建时间", "最后使用时间"]
USAGE_HEADERS = ["使用时间", "记录号", "来源"]

SOURCE_LABELS = {
    SOURCE_API: "物业API",
    SOURCE_MANUAL: "手动录入",
}


def source_label(source: str) -> str:
    return SOURCE_LABELS.get(source, source or "未知")


def _render(headers: list[str], rows) -> str:
    buffer = io.StringIO()
    buffer.write(BOM)
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def export_filename(kind: str) -> str:
    return f"{kind}_{utcnow().strftime('%Y%m%d_%H%M%S')}.csv"


def purchases_csv() -> str:
    """One row per voucher, newest purchase first."""
    vouchers = sorted(
        current_store().load_vouchers().values(),
        key=lambda v: (v.created_at, v.seq),
        reverse=True,
    )
    rows = (
        [
            v.id,
            v.total,
            v.used,
            v.remain,
            "已停用" if v.status == STATUS_DISABLED else "活跃",
            v.note,
            to_utc_z(v.created_at),
            to_utc_z(v.last_used_at) or "",
        ]
        for v in vouchers
    )
    return _render(PURCHASE_HEADERS, rows)


def usages_csv(start_date: str | None = None, end_date: str | None = None, voucher_id: str | None = None) -> str:
    """One row per usage event in the (inclusive) date range, newest first."""
    start, end = parse_date_range(start_date, end_date)
    usages = filter_usages(current_store().read_usages(), start, end, voucher_id)
    rows = ([to_utc_z(u.used_at), u.voucher_id, source_label(u.source)] for u in usages)
    return _render(USAGE_HEADERS, rows)
