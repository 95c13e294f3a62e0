from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from ..time_utils import parse_iso_datetime, to_utc_z


STATUS_ACTIVE = "active"
STATUS_DISABLED = "disabled"
VOUCHER_STATUSES = (STATUS_ACTIVE, STATUS_DISABLED)

SOURCE_API = "api"
SOURCE_MANUAL = "manual"
USAGE_SOURCES = (SOURCE_API, SOURCE_MANUAL)

QR_SOURCE_AUTO = "auto"
QR_SOURCE_MANUAL = "manual"

# Audit entry types
CREATE = "CREATE"
ADMIN_LOGIN = "ADMIN_LOGIN"
ADMIN_LOGOUT = "ADMIN_LOGOUT"
WEBHOOK_USE = "WEBHOOK_USE"
MANUAL_USE = "MANUAL_USE"
ADJUST = "ADJUST"
UPDATE = "UPDATE"
DISABLE = "DISABLE"
DISPLAY = "DISPLAY"
CONFIRM = "CONFIRM"
UPLOAD_QR = "UPLOAD_QR"
AUDIT_TYPES = (
    CREATE, ADMIN_LOGIN, ADMIN_LOGOUT, WEBHOOK_USE, MANUAL_USE,
    ADJUST, UPDATE, DISABLE, DISPLAY, CONFIRM, UPLOAD_QR,
)


@dataclass
class Voucher:
    """
    A purchased allotment of parking uses.

    INVARIANT: 0 <= remain <= total. `total`, `id`, `seq` and `created_at`
    never change after creation. `seq` is the creation-order tiebreak.
    """
    id: str
    seq: int
    total: int
    remain: int
    created_at: datetime
    status: str = STATUS_ACTIVE
    note: str = ""
    last_used_at: Optional[datetime] = None
    qr_source: str = QR_SOURCE_AUTO
    qr_data_url: Optional[str] = None

    @property
    def used(self) -> int:
        return max(0, self.total - self.remain)

    @property
    def is_usable(self) -> bool:
        return self.status == STATUS_ACTIVE and self.remain > 0

    def copy(self) -> "Voucher":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "total": self.total,
            "remain": self.remain,
            "used": self.used,
            "status": self.status,
            "note": self.note,
            "createdAt": to_utc_z(self.created_at),
            "lastUsedAt": to_utc_z(self.last_used_at),
            "qrSource": self.qr_source,
        }

    def to_record(self) -> dict:
        """Storage form: wire fields plus seq and the uploaded QR image."""
        record = self.to_dict()
        record.pop("used")
        record["seq"] = self.seq
        record["qrDataUrl"] = self.qr_data_url
        return record

    @classmethod
    def from_record(cls, raw: dict) -> "Voucher":
        return cls(
            id=raw["id"],
            seq=int(raw.get("seq") or 0),
            total=int(raw["total"]),
            remain=int(raw["remain"]),
            created_at=parse_iso_datetime(raw["createdAt"]),
            status=raw.get("status") or STATUS_ACTIVE,
            note=raw.get("note") or "",
            last_used_at=parse_iso_datetime(raw.get("lastUsedAt")),
            qr_source=raw.get("qrSource") or QR_SOURCE_AUTO,
            qr_data_url=raw.get("qrDataUrl"),
        )


@dataclass(frozen=True)
class UsageRecord:
    """One decrement of a voucher's remaining count. Immutable, append-only."""
    id: str
    voucher_id: str
    used_at: datetime
    source: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "voucherId": self.voucher_id,
            "usedAt": to_utc_z(self.used_at),
            "source": self.source,
        }

    @classmethod
    def from_record(cls, raw: dict) -> "UsageRecord":
        return cls(
            id=raw["id"],
            voucher_id=raw["voucherId"],
            used_at=parse_iso_datetime(raw["usedAt"]),
            source=raw["source"],
        )


@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of a state-changing action."""
    ts: datetime
    type: str
    voucher_id: Optional[str] = None
    ip: Optional[str] = None
    ua: str = ""
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "ts": to_utc_z(self.ts),
            "type": self.type,
            "voucherId": self.voucher_id,
            "ip": self.ip,
            "ua": self.ua,
            "meta": dict(self.meta),
        }

    @classmethod
    def from_record(cls, raw: dict) -> "AuditEntry":
        return cls(
            ts=parse_iso_datetime(raw["ts"]),
            type=raw["type"],
            voucher_id=raw.get("voucherId"),
            ip=raw.get("ip"),
            ua=raw.get("ua") or "",
            meta=raw.get("meta") or {},
        )


@dataclass(frozen=True)
class RequestMeta:
    """Requester metadata copied into audit entries."""
    ip: Optional[str] = None
    ua: str = ""
