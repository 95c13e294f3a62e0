"""
Write queue tests: FIFO ordering, error isolation, app context, re-entrancy.
"""

import threading

import pytest
from flask import current_app

from parking_app.models import ADMIN_LOGOUT
from parking_app.services import audit_service
from parking_app.services.voucher_store import current_store
from parking_app.services.write_queue import WriteQueue


@pytest.fixture
def queue(ctx):
    q = WriteQueue("test-writes")
    yield q
    q.shutdown()


class TestWriteQueue:
    def test_fifo_order(self, queue):
        seen = []
        futures = [queue.submit(seen.append, i) for i in range(50)]
        for f in futures:
            f.result()
        assert seen == list(range(50))

    def test_one_task_at_a_time(self, queue):
        running = []
        overlaps = []
        lock = threading.Lock()

        def task():
            with lock:
                running.append(1)
                if len(running) > 1:
                    overlaps.append(len(running))
            with lock:
                running.pop()

        for f in [queue.submit(task) for _ in range(30)]:
            f.result()
        assert overlaps == []

    def test_error_isolated_to_its_caller(self, queue):
        def boom():
            raise RuntimeError("disk on fire")

        failing = queue.submit(boom)
        following = queue.submit(lambda: "still running")

        with pytest.raises(RuntimeError):
            failing.result()
        assert following.result() == "still running"

    def test_run_returns_value_and_reraises(self, queue):
        assert queue.run(lambda a, b: a + b, 2, 3) == 5
        with pytest.raises(KeyError):
            queue.run(lambda: {}["missing"])

    def test_tasks_run_inside_app_context(self, ctx, queue):
        assert queue.run(lambda: current_app.name) == ctx.name

    def test_nested_run_executes_inline(self, queue):
        def outer():
            return queue.run(lambda: "inner") + "+outer"

        assert queue.run(outer) == "inner+outer"

    def test_runs_on_single_worker_thread(self, queue):
        names = {queue.run(lambda: threading.current_thread().name) for _ in range(5)}
        assert len(names) == 1
        assert names.pop().startswith("test-writes")


def test_standalone_audit_event_stamped_on_worker(ctx, monkeypatch):
    stamped_on = []
    real_utcnow = audit_service.utcnow

    def tracking_utcnow():
        stamped_on.append(threading.current_thread().name)
        return real_utcnow()

    monkeypatch.setattr(audit_service, "utcnow", tracking_utcnow)
    first = audit_service.record_event(ADMIN_LOGOUT)
    second = audit_service.record_event(ADMIN_LOGOUT)

    assert stamped_on and all(name.startswith("voucher-writes") for name in stamped_on)
    assert first.ts <= second.ts
    assert [e.ts for e in current_store().read_audit()] == [first.ts, second.ts]
