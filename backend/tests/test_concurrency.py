# Overview: Concurrency tests for the serialized voucher write path.

"""
Concurrent usage requests against one voucher.

N simultaneous usage calls on a voucher with remain=k must produce exactly
k successes and N-k exhausted rejections, for every store backend.
"""
import os
import tempfile
import threading
import unittest

from parking_app.errors import UsageRejected
from parking_app.extensions import db, WRITE_QUEUE_KEY
from parking_app.models import SOURCE_API, SOURCE_MANUAL
from parking_app.services import usage_service, voucher_service
from parking_app.services.voucher_store import current_store

from .conftest import make_app


class _ConcurrentUsageMixin:
    store_backend = "memory"
    threads = 20
    remain = 5

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        overrides = {"STORE_BACKEND": self.store_backend}
        if self.store_backend == "sql":
            db_path = os.path.join(self.tmpdir.name, "concurrency.db")
            overrides["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{db_path}"
        if self.store_backend == "json":
            overrides["DATA_DIR"] = os.path.join(self.tmpdir.name, "data")
        self.app = make_app(**overrides)

        with self.app.app_context():
            if self.store_backend == "sql":
                db.create_all()
            self.voucher_id = voucher_service.create_voucher(self.remain).id

    def tearDown(self):
        self.app.extensions[WRITE_QUEUE_KEY].shutdown()
        if self.store_backend == "sql":
            with self.app.app_context():
                db.session.remove()
                db.drop_all()
                db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_concurrently(self, target):
        successes = []
        rejections = []
        errors = []
        lock = threading.Lock()
        barrier = threading.Barrier(self.threads)

        def worker(i):
            with self.app.app_context():
                barrier.wait()
                try:
                    result = target(i)
                    with lock:
                        successes.append(result)
                except UsageRejected as exc:
                    with lock:
                        rejections.append(exc)
                except Exception as exc:
                    with lock:
                        errors.append(exc)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(self.threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return successes, rejections, errors

    def test_exactly_remain_successes(self):
        successes, rejections, errors = self._run_concurrently(
            lambda i: usage_service.record_usage(self.voucher_id, SOURCE_API if i % 2 else SOURCE_MANUAL)
        )

        self.assertFalse(errors)
        self.assertEqual(len(successes), self.remain)
        self.assertEqual(len(rejections), self.threads - self.remain)
        self.assertTrue(all(r.reason == UsageRejected.EXHAUSTED for r in rejections))

        # Every success saw a distinct remain value on the way down
        self.assertEqual(
            sorted(s.voucher.remain for s in successes),
            list(range(self.remain)),
        )

        with self.app.app_context():
            store = current_store()
            self.assertEqual(store.load_vouchers()[self.voucher_id].remain, 0)
            usages = store.read_usages()
            self.assertEqual(len(usages), self.remain)
            self.assertEqual(len({u.id for u in usages}), self.remain)

    def test_automatic_selection_under_contention(self):
        successes, rejections, errors = self._run_concurrently(
            lambda i: usage_service.record_usage(None, SOURCE_API)
        )

        self.assertFalse(errors)
        self.assertEqual(len(successes), self.remain)
        self.assertTrue(all(r.reason == UsageRejected.NO_ACTIVE_VOUCHER for r in rejections))

    def test_disable_races_with_usage(self):
        def target(i):
            if i == 0:
                return voucher_service.disable_voucher(self.voucher_id)
            return usage_service.record_usage(self.voucher_id, SOURCE_API)

        successes, rejections, errors = self._run_concurrently(target)
        self.assertFalse(errors)

        with self.app.app_context():
            store = current_store()
            voucher = store.load_vouchers()[self.voucher_id]
            # Usage records and the stored remain always agree, whatever the interleaving
            self.assertEqual(voucher.total - voucher.remain, len(store.read_usages()))
            self.assertGreaterEqual(voucher.remain, 0)
        self.assertTrue(all(
            r.reason in (UsageRejected.DISABLED, UsageRejected.EXHAUSTED) for r in rejections
        ))


class MemoryStoreConcurrencyTests(_ConcurrentUsageMixin, unittest.TestCase):
    store_backend = "memory"


class SqlStoreConcurrencyTests(_ConcurrentUsageMixin, unittest.TestCase):
    store_backend = "sql"


class JsonStoreConcurrencyTests(_ConcurrentUsageMixin, unittest.TestCase):
    store_backend = "json"


if __name__ == "__main__":
    unittest.main()
