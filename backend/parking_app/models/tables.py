from __future__ import annotations

from ..extensions import db
from .records import AuditEntry, UsageRecord, Voucher


class VoucherRow(db.Model):
    """
    Persistent voucher state.

    INVARIANT: 0 <= remain <= total (enforced in the service layer and by
    a CHECK constraint as a backstop).
    """
    __tablename__ = "vouchers"
    __table_args__ = (
        db.CheckConstraint("remain >= 0 AND remain <= total", name="ck_vouchers_remain_range"),
        db.Index("ix_vouchers_status_seq", "status", "seq"),
    )

    id = db.Column(db.String(32), primary_key=True)
    seq = db.Column(db.Integer, nullable=False, unique=True)
    total = db.Column(db.Integer, nullable=False)
    remain = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="active")
    note = db.Column(db.String(255), nullable=False, default="")
    qr_source = db.Column(db.String(16), nullable=False, default="auto")
    qr_data_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<VoucherRow id={self.id} remain={self.remain}/{self.total}>"

    def to_record(self) -> Voucher:
        return Voucher(
            id=self.id,
            seq=self.seq,
            total=self.total,
            remain=self.remain,
            created_at=self.created_at,
            status=self.status,
            note=self.note or "",
            last_used_at=self.last_used_at,
            qr_source=self.qr_source,
            qr_data_url=self.qr_data_url,
        )

    def apply(self, voucher: Voucher) -> None:
        self.seq = voucher.seq
        self.total = voucher.total
        self.remain = voucher.remain
        self.status = voucher.status
        self.note = voucher.note
        self.qr_source = voucher.qr_source
        self.qr_data_url = voucher.qr_data_url
        self.created_at = voucher.created_at
        self.last_used_at = voucher.last_used_at


class UsageRow(db.Model):
    """IMMUTABLE: append-only usage log. `pk` preserves append order."""
    __tablename__ = "voucher_usages"
    __table_args__ = (
        db.Index("ix_voucher_usages_used_at", "used_at"),
        {"sqlite_autoincrement": True},
    )

    pk = db.Column(db.Integer, primary_key=True)
    usage_id = db.Column(db.String(32), nullable=False, unique=True)
    voucher_id = db.Column(db.String(32), nullable=False, index=True)
    used_at = db.Column(db.DateTime, nullable=False)
    source = db.Column(db.String(16), nullable=False)

    def to_record(self) -> UsageRecord:
        return UsageRecord(
            id=self.usage_id,
            voucher_id=self.voucher_id,
            used_at=self.used_at,
            source=self.source,
        )


class AuditRow(db.Model):
    """IMMUTABLE: append-only audit log. Never update or delete."""
    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("ix_audit_log_ts", "ts"),
        {"sqlite_autoincrement": True},
    )

    pk = db.Column(db.Integer, primary_key=True)
    ts = db.Column(db.DateTime, nullable=False)
    type = db.Column(db.String(32), nullable=False, index=True)
    voucher_id = db.Column(db.String(32), nullable=True, index=True)
    ip = db.Column(db.String(45), nullable=True)
    ua = db.Column(db.String(512), nullable=False, default="")
    meta = db.Column(db.JSON, nullable=False, default=dict)

    def to_record(self) -> AuditEntry:
        return AuditEntry(
            ts=self.ts,
            type=self.type,
            voucher_id=self.voucher_id,
            ip=self.ip,
            ua=self.ua or "",
            meta=dict(self.meta or {}),
        )
