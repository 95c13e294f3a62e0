# Overview: Single-consumer FIFO queue that serializes every store mutation.

"""
Serialized Write Queue

WHY: The voucher store has no transactions. Every read-check-write sequence
(usage, create, update, disable, QR upload, audit append) runs as one task
on a single worker thread, so no two mutations ever interleave.

GUARANTEES:
- Strict FIFO: tasks run in submission order, one at a time
- Error isolation: a failing task raises to its own caller only; the
  worker moves on to the next task
- Each task runs inside the application context of the app that queued it
- No cancellation and no timeout once a task is queued

Tasks already running on the worker may call run() again; the nested call
executes inline instead of deadlocking on the queue.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from flask import current_app

from ..errors import EXPECTED_ERRORS
from ..extensions import component, WRITE_QUEUE_KEY


logger = logging.getLogger(__name__)

_worker_state = threading.local()


class WriteQueue:
    def __init__(self, name: str = "voucher-writes"):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)

    def submit(self, fn, *args, **kwargs) -> Future:
        app = current_app._get_current_object()
        return self._executor.submit(self._execute, app, fn, args, kwargs)

    def run(self, fn, *args, **kwargs):
        """Enqueue fn and block until it has run; re-raises its exception."""
        if getattr(_worker_state, "active", False):
            return fn(*args, **kwargs)
        return self.submit(fn, *args, **kwargs).result()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _execute(self, app, fn, args, kwargs):
        task = getattr(fn, "__qualname__", repr(fn))
        _worker_state.active = True
        try:
            with app.app_context():
                return fn(*args, **kwargs)
        except EXPECTED_ERRORS as exc:
            logger.debug("Queued write %s rejected: %s", task, exc)
            raise
        except Exception:
            logger.exception("Queued write %s failed; continuing with next task", task)
            raise
        finally:
            _worker_state.active = False


def current_write_queue() -> WriteQueue:
    return component(WRITE_QUEUE_KEY)
