# Overview: Storage-engine interface for the voucher map and the two append-only logs.

"""
Voucher Store

The core never caches voucher state: every mutation re-reads the store
through load_vouchers() before deciding, then hands every write it made to
commit() in one call: the voucher map, its usage records and its audit
entries land together or not at all.

BACKENDS:
- MemoryVoucherStore: process memory, used by tests
- SqlVoucherStore: Flask-SQLAlchemy tables (vouchers, voucher_usages, audit_log)
- JsonFileVoucherStore: vouchers.json + usages.jsonl + logs.jsonl in DATA_DIR

Every backend hands out copies; mutating a returned Voucher does not
change stored state until it is saved or committed.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError
from ..extensions import db, component, STORE_KEY
from ..models import AuditEntry, AuditRow, UsageRecord, UsageRow, Voucher, VoucherRow


logger = logging.getLogger(__name__)


class VoucherStore(ABC):
    """Abstract durable store. Vouchers are returned in creation (seq) order."""

    @abstractmethod
    def load_vouchers(self) -> dict[str, Voucher]:
        ...

    @abstractmethod
    def save_vouchers(self, vouchers: dict[str, Voucher]) -> None:
        ...

    @abstractmethod
    def append_usage(self, record: UsageRecord) -> None:
        ...

    @abstractmethod
    def read_usages(self) -> list[UsageRecord]:
        ...

    @abstractmethod
    def append_audit(self, entry: AuditEntry) -> None:
        ...

    @abstractmethod
    def read_audit(self) -> list[AuditEntry]:
        ...

    @abstractmethod
    def commit(
        self,
        vouchers: dict[str, Voucher] | None = None,
        usages: Iterable[UsageRecord] = (),
        audit: Iterable[AuditEntry] = (),
    ) -> None:
        """
        Write one mutation's voucher map, usage records and audit entries as a
        unit. On failure the store is left as it was and StorageError is raised.
        """


def _ordered(vouchers) -> dict[str, Voucher]:
    return {v.id: v for v in sorted(vouchers, key=lambda v: v.seq)}


class MemoryVoucherStore(VoucherStore):
    def __init__(self):
        self._lock = threading.RLock()
        self._vouchers: dict[str, Voucher] = {}
        self._usages: list[UsageRecord] = []
        self._audit: list[AuditEntry] = []

    def load_vouchers(self) -> dict[str, Voucher]:
        with self._lock:
            return _ordered(v.copy() for v in self._vouchers.values())

    def save_vouchers(self, vouchers: dict[str, Voucher]) -> None:
        with self._lock:
            self._vouchers = {vid: v.copy() for vid, v in vouchers.items()}

    def append_usage(self, record: UsageRecord) -> None:
        with self._lock:
            self._usages.append(record)

    def read_usages(self) -> list[UsageRecord]:
        with self._lock:
            return list(self._usages)

    def append_audit(self, entry: AuditEntry) -> None:
        with self._lock:
            self._audit.append(entry)

    def read_audit(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._audit)

    def commit(self, vouchers=None, usages=(), audit=()) -> None:
        with self._lock:
            previous = self._vouchers
            usage_mark, audit_mark = len(self._usages), len(self._audit)
            try:
                if vouchers is not None:
                    self.save_vouchers(vouchers)
                for record in usages:
                    self.append_usage(record)
                for entry in audit:
                    self.append_audit(entry)
            except Exception:
                self._vouchers = previous
                del self._usages[usage_mark:]
                del self._audit[audit_mark:]
                raise


class SqlVoucherStore(VoucherStore):
    """
    Flask-SQLAlchemy backend. Must be used inside an application context
    (the write queue pushes one for every task).
    """

    def load_vouchers(self) -> dict[str, Voucher]:
        try:
            rows = db.session.query(VoucherRow).order_by(VoucherRow.seq).all()
            return {row.id: row.to_record() for row in rows}
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError("Failed to load vouchers") from exc

    def save_vouchers(self, vouchers: dict[str, Voucher]) -> None:
        self._commit_staged(lambda: self._stage_vouchers(vouchers), "Failed to save vouchers")

    def append_usage(self, record: UsageRecord) -> None:
        self._commit_staged(lambda: db.session.add(_usage_row(record)), "Failed to append to voucher_usages")

    def read_usages(self) -> list[UsageRecord]:
        try:
            rows = db.session.query(UsageRow).order_by(UsageRow.pk).all()
            return [row.to_record() for row in rows]
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError("Failed to read usage log") from exc

    def append_audit(self, entry: AuditEntry) -> None:
        self._commit_staged(lambda: db.session.add(_audit_row(entry)), "Failed to append to audit_log")

    def read_audit(self) -> list[AuditEntry]:
        try:
            rows = db.session.query(AuditRow).order_by(AuditRow.pk).all()
            return [row.to_record() for row in rows]
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError("Failed to read audit log") from exc

    def commit(self, vouchers=None, usages=(), audit=()) -> None:
        def _stage():
            if vouchers is not None:
                self._stage_vouchers(vouchers)
            db.session.add_all([_usage_row(record) for record in usages])
            db.session.add_all([_audit_row(entry) for entry in audit])

        self._commit_staged(_stage, "Failed to commit voucher changes")

    def _stage_vouchers(self, vouchers: dict[str, Voucher]) -> None:
        existing = {row.id: row for row in db.session.query(VoucherRow).all()}
        for voucher_id, voucher in vouchers.items():
            row = existing.get(voucher_id)
            if row is None:
                row = VoucherRow(id=voucher_id)
                db.session.add(row)
            row.apply(voucher)

    def _commit_staged(self, stage, message: str) -> None:
        """One transaction: everything stage() adds is committed or rolled back together."""
        try:
            stage()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(message) from exc


def _usage_row(record: UsageRecord) -> UsageRow:
    return UsageRow(
        usage_id=record.id,
        voucher_id=record.voucher_id,
        used_at=record.used_at,
        source=record.source,
    )


def _audit_row(entry: AuditEntry) -> AuditRow:
    return AuditRow(
        ts=entry.ts,
        type=entry.type,
        voucher_id=entry.voucher_id,
        ip=entry.ip,
        ua=(entry.ua or "")[:512],
        meta=dict(entry.meta),
    )


class JsonFileVoucherStore(VoucherStore):
    """
    File layout:
    - vouchers.json: {voucher_id: record}, rewritten atomically (tmp + fsync + rename)
    - usages.jsonl / logs.jsonl: one JSON object per line, append-only

    commit() snapshots vouchers.json and the log sizes first; a failed commit
    truncates the logs back and restores the snapshot.
    """

    def __init__(self, data_dir: str | os.PathLike):
        self._dir = Path(data_dir)
        self._vouchers_path = self._dir / "vouchers.json"
        self._usages_path = self._dir / "usages.jsonl"
        self._audit_path = self._dir / "logs.jsonl"
        self._lock = threading.RLock()
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            if not self._vouchers_path.exists():
                self._write_vouchers_file({})
            for path in (self._usages_path, self._audit_path):
                path.touch(exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot initialise data directory {self._dir}") from exc

    def load_vouchers(self) -> dict[str, Voucher]:
        with self._lock:
            try:
                raw = json.loads(self._vouchers_path.read_text(encoding="utf-8") or "{}")
                return _ordered(Voucher.from_record(item) for item in raw.values())
            except (OSError, ValueError, KeyError) as exc:
                raise StorageError("Failed to load vouchers.json") from exc

    def save_vouchers(self, vouchers: dict[str, Voucher]) -> None:
        with self._lock:
            self._write_vouchers_file({vid: v.to_record() for vid, v in vouchers.items()})

    def append_usage(self, record: UsageRecord) -> None:
        self._append_line(self._usages_path, record.to_dict())

    def read_usages(self) -> list[UsageRecord]:
        return [UsageRecord.from_record(item) for item in self._read_lines(self._usages_path)]

    def append_audit(self, entry: AuditEntry) -> None:
        self._append_line(self._audit_path, entry.to_dict())

    def read_audit(self) -> list[AuditEntry]:
        return [AuditEntry.from_record(item) for item in self._read_lines(self._audit_path)]

    def commit(self, vouchers=None, usages=(), audit=()) -> None:
        with self._lock:
            try:
                snapshot = self._vouchers_path.read_text(encoding="utf-8")
                sizes = {path: path.stat().st_size for path in (self._usages_path, self._audit_path)}
            except OSError as exc:
                raise StorageError("Failed to snapshot data files") from exc
            try:
                if vouchers is not None:
                    self.save_vouchers(vouchers)
                for record in usages:
                    self.append_usage(record)
                for entry in audit:
                    self.append_audit(entry)
            except Exception:
                self._restore(snapshot, sizes)
                raise

    def _restore(self, snapshot: str, sizes: dict[Path, int]) -> None:
        try:
            for path, size in sizes.items():
                with path.open("r+b") as fh:
                    fh.truncate(size)
            self._replace_vouchers_text(snapshot)
        except (OSError, StorageError):
            logger.exception("Could not roll back %s after a failed commit", self._dir)

    def _write_vouchers_file(self, payload: dict) -> None:
        self._replace_vouchers_text(json.dumps(payload, ensure_ascii=False, indent=2))

    def _replace_vouchers_text(self, text: str) -> None:
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self._dir, prefix=".vouchers-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self._vouchers_path)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageError("Failed to write vouchers.json") from exc

    def _append_line(self, path: Path, item: dict) -> None:
        with self._lock:
            try:
                with path.open("a", encoding="utf-8") as fh:
                    fh.write(json.dumps(item, ensure_ascii=False) + "\n")
            except OSError as exc:
                raise StorageError(f"Failed to append to {path.name}") from exc

    def _read_lines(self, path: Path) -> list[dict]:
        with self._lock:
            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except OSError as exc:
                raise StorageError(f"Failed to read {path.name}") from exc
        items = []
        for lineno, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                items.append(json.loads(line))
            except ValueError:
                logger.warning("Skipping malformed line %d in %s", lineno, path.name)
        return items


def build_store(config) -> VoucherStore:
    backend = config.get("STORE_BACKEND", "sql")
    if backend == "memory":
        return MemoryVoucherStore()
    if backend == "json":
        return JsonFileVoucherStore(config["DATA_DIR"])
    if backend == "sql":
        return SqlVoucherStore()
    raise ValueError(f"Unknown STORE_BACKEND: {backend!r}")


def current_store() -> VoucherStore:
    return component(STORE_KEY)
