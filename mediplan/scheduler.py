"""Cancellable timers owned by a store instance.

Notification expiry, the assistant's reply delay and reminder pacing all go
through a :class:`Scheduler` so a store teardown can cancel whatever is still
pending.  :class:`ThreadingScheduler` runs callbacks on ``threading.Timer``
threads; :class:`ManualScheduler` keeps a virtual clock that tests advance
explicitly.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from typing import Callable, Dict, List, Optional, Tuple

import structlog


logger = structlog.get_logger(__name__)

Callback = Callable[[], None]


class TimerHandle:
    """Handle returned by :meth:`Scheduler.call_later`."""

    def __init__(self, owner: "Scheduler", timer_id: int) -> None:
        self._owner = owner
        self.id = timer_id
        self.cancelled = False
        self.fired = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        if not self.pending:
            return
        self.cancelled = True
        self._owner._discard(self)


class Scheduler:
    """Interface for delayed callbacks."""

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        raise NotImplementedError

    def cancel_all(self) -> None:
        raise NotImplementedError

    def _discard(self, handle: TimerHandle) -> None:
        raise NotImplementedError


def _run_callback(handle: TimerHandle, callback: Callback) -> None:
    handle.fired = True
    try:
        callback()
    except Exception:
        logger.exception("scheduled_callback_failed", timer_id=handle.id)


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon ``threading.Timer`` instances."""

    def __init__(self) -> None:
        self._timers: Dict[int, Tuple[TimerHandle, threading.Timer]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(self, next(self._ids))

        def _fire() -> None:
            with self._lock:
                self._timers.pop(handle.id, None)
            if handle.cancelled:
                return
            _run_callback(handle, callback)

        timer = threading.Timer(max(0.0, delay), _fire)
        timer.daemon = True
        with self._lock:
            self._timers[handle.id] = (handle, timer)
        timer.start()
        return handle

    def _discard(self, handle: TimerHandle) -> None:
        with self._lock:
            entry = self._timers.pop(handle.id, None)
        if entry is not None:
            entry[1].cancel()

    def cancel_all(self) -> None:
        with self._lock:
            entries = list(self._timers.values())
            self._timers.clear()
        for handle, timer in entries:
            handle.cancelled = True
            timer.cancel()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._timers)


class ManualScheduler(Scheduler):
    """Deterministic scheduler driven by :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: List[Tuple[float, int, TimerHandle, Callback]] = []
        self._ids = itertools.count(1)

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(self, next(self._ids))
        heapq.heappush(self._queue, (self.now + max(0.0, delay), handle.id, handle, callback))
        return handle

    def _discard(self, handle: TimerHandle) -> None:
        # Cancelled entries are skipped when popped.
        return None

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run due callbacks; return how many ran."""

        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            _run_callback(handle, callback)
            ran += 1
        self.now = target
        return ran

    def run_all(self) -> int:
        """Run every pending callback, including ones scheduled while running."""

        ran = 0
        while True:
            pending = [entry for entry in self._queue if not entry[2].cancelled]
            if not pending:
                self._queue.clear()
                return ran
            latest = max(entry[0] for entry in pending)
            ran += self.advance(max(0.0, latest - self.now))

    def cancel_all(self) -> None:
        for _, _, handle, _ in self._queue:
            handle.cancelled = True
        self._queue.clear()

    @property
    def pending_count(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)


__all__ = ["Scheduler", "TimerHandle", "ThreadingScheduler", "ManualScheduler"]
