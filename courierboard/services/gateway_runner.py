# Rev 0.4.0

"""Off-loop execution of blocking gateway calls.

Jobs run on a QThreadPool; their result (or exception) is handed back to the
loop thread through a queued signal on a process-wide relay, so callbacks
always run on the Qt event loop. Worker threads never hold a runner: a runner
released while its calls are in flight is simply never called back.
"""
from __future__ import annotations

import itertools
import logging
import weakref
from typing import Any, Callable, Dict, Optional, Tuple

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from courierboard.repositories.errors import GatewayError

log = logging.getLogger(__name__)

DoneCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]


class _Relay(QObject):
    # runner key, job id, result, exception
    finished = Signal(int, int, object, object)

    def __init__(self):
        super().__init__()
        self.runners: "weakref.WeakValueDictionary[int, GatewayRunner]" = weakref.WeakValueDictionary()
        self.finished.connect(self._route)

    def _route(self, key: int, job_id: int, result: Any, error: Optional[Exception]) -> None:
        runner = self.runners.get(key)
        if runner is not None:
            runner._deliver(job_id, result, error)


_relay: Optional[_Relay] = None
_runner_keys = itertools.count(1)


def _shared_relay() -> _Relay:
    global _relay
    if _relay is None:
        _relay = _Relay()
    return _relay


class _Job(QRunnable):
    def __init__(self, relay: _Relay, key: int, job_id: int, fn: Callable[[], Any]):
        super().__init__()
        self._relay = relay
        self._key = key
        self._job_id = job_id
        self._fn = fn

    def run(self) -> None:
        try:
            result = self._fn()
        except Exception as exc:  # handed to the loop thread below
            self._relay.finished.emit(self._key, self._job_id, None, exc)
            return
        self._relay.finished.emit(self._key, self._job_id, result, None)


class GatewayRunner(QObject):
    """Create on the loop thread; callbacks run there."""

    def __init__(self, pool: Optional[QThreadPool] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._relay = _shared_relay()
        self._key = next(_runner_keys)
        self._relay.runners[self._key] = self
        self._ids = itertools.count(1)
        self._pending: Dict[int, Tuple[DoneCallback, ErrorCallback]] = {}

    def submit(self, fn: Callable[[], Any], on_done: DoneCallback, on_error: ErrorCallback) -> int:
        job_id = next(self._ids)
        self._pending[job_id] = (on_done, on_error)
        self._pool.start(_Job(self._relay, self._key, job_id, fn))
        return job_id

    def pending(self) -> int:
        """Jobs whose callbacks have not run yet."""
        return len(self._pending)

    def discard(self) -> None:
        """Forget all callbacks. Calls already running still finish."""
        self._pending.clear()

    def _deliver(self, job_id: int, result: Any, error: Optional[Exception]) -> None:
        callbacks = self._pending.pop(job_id, None)
        if callbacks is None:
            return
        on_done, on_error = callbacks
        if error is None:
            on_done(result)
            return
        if not isinstance(error, GatewayError):
            log.error("Background call failed", exc_info=(type(error), error, error.__traceback__))
        on_error(error)
