"""
Usage recording tests.

Verifies:
- Each accepted usage decrements remain by one and appends one usage record
- Rejections (missing, disabled, exhausted) write nothing
- Automatic selection consumes the oldest usable voucher first
- Admin adjustments never fabricate usage records
"""

import pytest

from parking_app.errors import StorageError, UsageRejected, ValidationError
from parking_app.models import (
    CONFIRM, MANUAL_USE, SOURCE_API, SOURCE_MANUAL, STATUS_DISABLED, WEBHOOK_USE,
)
from parking_app.services import usage_service, voucher_service


class TestRecordUsage:
    def test_three_uses_then_exhausted(self, store):
        voucher = voucher_service.create_voucher(3, note="March")
        assert voucher.remain == 3

        remains = [usage_service.record_usage(voucher.id, SOURCE_API).voucher.remain for _ in range(3)]
        assert remains == [2, 1, 0]

        with pytest.raises(UsageRejected) as exc_info:
            usage_service.record_usage(voucher.id, SOURCE_API)
        assert exc_info.value.reason == UsageRejected.EXHAUSTED
        assert exc_info.value.voucher_id == voucher.id

        stored = store.load_vouchers()[voucher.id]
        assert stored.remain == 0
        assert stored.used == 3
        assert stored.last_used_at is not None
        assert len(store.read_usages()) == 3

    def test_usage_record_and_audit_entry(self, store):
        voucher = voucher_service.create_voucher(2)
        result = usage_service.record_usage(voucher.id, SOURCE_MANUAL)

        assert result.usage.voucher_id == voucher.id
        assert result.usage.source == SOURCE_MANUAL
        assert result.usage.id.startswith("USE_")
        assert result.to_dict()["remain"] == 1

        entry = store.read_audit()[-1]
        assert entry.type == MANUAL_USE
        assert entry.voucher_id == voucher.id
        assert entry.meta == {"before": 2, "after": 1, "usageId": result.usage.id, "source": SOURCE_MANUAL}

    def test_api_source_defaults_to_webhook_audit(self, store):
        voucher = voucher_service.create_voucher(1)
        usage_service.record_usage(voucher.id, SOURCE_API)
        assert store.read_audit()[-1].type == WEBHOOK_USE

    def test_confirm_audit_type(self, store):
        voucher = voucher_service.create_voucher(1)
        usage_service.record_usage(voucher.id, SOURCE_MANUAL, audit_type=CONFIRM)
        assert store.read_audit()[-1].type == CONFIRM

    def test_unknown_voucher_rejected(self, store):
        with pytest.raises(UsageRejected) as exc_info:
            usage_service.record_usage("VCH_20260101_NOPE00", SOURCE_API)
        assert exc_info.value.reason == UsageRejected.NOT_FOUND
        assert store.read_usages() == []

    def test_disabled_voucher_rejected_without_writes(self, store):
        voucher = voucher_service.create_voucher(5)
        voucher_service.disable_voucher(voucher.id)
        audit_before = len(store.read_audit())

        with pytest.raises(UsageRejected) as exc_info:
            usage_service.record_usage(voucher.id, SOURCE_API)
        assert exc_info.value.reason == UsageRejected.DISABLED

        assert store.load_vouchers()[voucher.id].remain == 5
        assert store.read_usages() == []
        assert len(store.read_audit()) == audit_before

    def test_reenabled_voucher_usable_again(self, store):
        voucher = voucher_service.create_voucher(2)
        voucher_service.disable_voucher(voucher.id)
        voucher_service.enable_voucher(voucher.id)

        result = usage_service.record_usage(voucher.id, SOURCE_API)
        assert result.voucher.remain == 1

    def test_invalid_source_rejected_before_queueing(self, store):
        voucher = voucher_service.create_voucher(2)
        with pytest.raises(ValidationError):
            usage_service.record_usage(voucher.id, "kiosk")
        with pytest.raises(ValidationError):
            usage_service.record_usage(voucher.id, SOURCE_MANUAL, audit_type="CREATE")
        assert store.load_vouchers()[voucher.id].remain == 2


class TestAutomaticSelection:
    def test_no_vouchers(self, store):
        with pytest.raises(UsageRejected) as exc_info:
            usage_service.record_usage(None, SOURCE_API)
        assert exc_info.value.reason == UsageRejected.NO_ACTIVE_VOUCHER
        assert exc_info.value.voucher_id is None

    def test_oldest_usable_first(self, store):
        first = voucher_service.create_voucher(1)
        second = voucher_service.create_voucher(1)

        assert usage_service.record_usage(None, SOURCE_API).voucher.id == first.id
        assert usage_service.record_usage(None, SOURCE_API).voucher.id == second.id
        with pytest.raises(UsageRejected):
            usage_service.record_usage(None, SOURCE_API)

    def test_skips_disabled(self, store):
        first = voucher_service.create_voucher(3)
        second = voucher_service.create_voucher(3)
        voucher_service.disable_voucher(first.id)

        assert usage_service.record_usage(None, SOURCE_API).voucher.id == second.id

    def test_select_usable_voucher_orders_by_seq(self, store):
        a = voucher_service.create_voucher(1)
        b = voucher_service.create_voucher(1)
        vouchers = store.load_vouchers()
        reversed_map = dict(reversed(list(vouchers.items())))
        assert usage_service.select_usable_voucher(reversed_map).id == a.id

        vouchers[a.id].status = STATUS_DISABLED
        assert usage_service.select_usable_voucher(vouchers).id == b.id


class TestAdjustmentIndependence:
    def test_adjusting_remain_creates_no_usage(self, store):
        voucher = voucher_service.create_voucher(10)
        usage_service.record_usage(voucher.id, SOURCE_API)

        updated = voucher_service.update_voucher(voucher.id, {"remain": 4})
        assert updated.remain == 4
        assert updated.used == 6
        # One real usage; the adjustment is audited, not logged as usage
        assert len(store.read_usages()) == 1

    def test_raising_remain_back_to_total(self, store):
        voucher = voucher_service.create_voucher(3)
        for _ in range(3):
            usage_service.record_usage(voucher.id, SOURCE_API)

        voucher_service.update_voucher(voucher.id, {"remain": 3})
        assert usage_service.record_usage(voucher.id, SOURCE_API).voucher.remain == 2
        assert len(store.read_usages()) == 4


class TestStorageFailure:
    """A write that fails part-way leaves the store exactly as it was."""

    def test_failed_usage_append_keeps_remain(self, store, monkeypatch):
        voucher = voucher_service.create_voucher(3)

        def fail(record):
            raise StorageError("usage log unavailable")

        monkeypatch.setattr(store, "append_usage", fail)
        with pytest.raises(StorageError):
            usage_service.record_usage(voucher.id, SOURCE_API)

        stored = store.load_vouchers()[voucher.id]
        assert stored.remain == 3
        assert stored.last_used_at is None
        assert store.read_usages() == []
        assert [e.type for e in store.read_audit()] == ["CREATE"]

    def test_failed_audit_append_drops_usage(self, store, monkeypatch):
        voucher = voucher_service.create_voucher(3)

        def fail(entry):
            raise StorageError("audit log unavailable")

        monkeypatch.setattr(store, "append_audit", fail)
        with pytest.raises(StorageError):
            usage_service.record_usage(voucher.id, SOURCE_MANUAL)
        monkeypatch.undo()

        assert store.load_vouchers()[voucher.id].remain == 3
        assert store.read_usages() == []

        # Store still works once the fault is gone
        assert usage_service.record_usage(voucher.id, SOURCE_MANUAL).voucher.remain == 2
        assert len(store.read_usages()) == 1

    def test_failed_create_stores_nothing(self, store, monkeypatch):
        def fail(entry):
            raise StorageError("audit log unavailable")

        monkeypatch.setattr(store, "append_audit", fail)
        with pytest.raises(StorageError):
            voucher_service.create_voucher(5)
        assert store.load_vouchers() == {}
