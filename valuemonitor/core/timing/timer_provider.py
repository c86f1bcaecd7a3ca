"""
Timer providers.

A timer provider schedules one-shot callbacks and reports the current time.
It is the only seam between the monitor and wall-clock time:

- :class:`ThreadingTimerProvider` runs callbacks on ``threading.Timer`` daemon
  threads (production).
- :class:`VirtualTimerProvider` keeps a manual clock and fires due callbacks
  only from :meth:`VirtualTimerProvider.advance`, on the calling thread
  (deterministic tests).
"""

from __future__ import annotations

import heapq
import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Tuple

TimerCallback = Callable[[], None]


class TimerHandle(Protocol):
    """Cancellable handle returned by :meth:`TimerProvider.create_timer`."""

    @property
    def cancelled(self) -> bool:
        ...

    def cancel(self) -> None:
        """Cancel the pending callback. Safe to call more than once."""
        ...


class TimerProvider(Protocol):
    """
    Protocol interface for scheduling one-shot callbacks.

    Methods
    -------
    create_timer(callback, delay)
        Run ``callback`` once after ``delay`` and return a cancellable handle.
    now()
        Current timezone-aware UTC time.
    """

    def create_timer(self, callback: TimerCallback, delay: timedelta) -> TimerHandle:
        ...

    def now(self) -> datetime:
        ...


class _ThreadingTimerHandle:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()


class ThreadingTimerProvider:
    """
    Wall-clock timer provider backed by ``threading.Timer``.

    Each timer runs on its own daemon thread, so callbacks execute
    concurrently with the caller of the monitor.
    """

    def create_timer(self, callback: TimerCallback, delay: timedelta) -> TimerHandle:
        timer = threading.Timer(max(delay.total_seconds(), 0.0), callback)
        timer.daemon = True
        timer.name = "valuemonitor-timer"
        handle = _ThreadingTimerHandle(timer)
        timer.start()
        return handle

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass
class VirtualTimer:
    """
    Timer scheduled on a :class:`VirtualTimerProvider`.

    Parameters
    ----------
    callback
        Function to run when the timer falls due.
    due_at
        Virtual time at which the timer falls due.
    """

    callback: TimerCallback
    due_at: datetime
    _cancelled: bool = field(default=False, init=False)
    _fired: bool = field(default=False, init=False)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    def cancel(self) -> None:
        self._cancelled = True

    def fire(self) -> None:
        if self._cancelled or self._fired:
            return
        self._fired = True
        self.callback()


class VirtualTimerProvider:
    """
    Manually advanced timer provider for deterministic tests.

    Nothing runs in the background: due callbacks execute only inside
    :meth:`advance`, in due-time order, on the calling thread. The clock is
    stepped to each timer's due time before that timer fires.

    Parameters
    ----------
    start
        Initial virtual time. Defaults to the current UTC time.
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime.now(timezone.utc)
        self._seq = itertools.count()
        self._heap: List[Tuple[datetime, int, VirtualTimer]] = []
        self._lock = threading.Lock()

    def create_timer(self, callback: TimerCallback, delay: timedelta) -> VirtualTimer:
        with self._lock:
            timer = VirtualTimer(callback=callback, due_at=self._now + delay)
            heapq.heappush(self._heap, (timer.due_at, next(self._seq), timer))
            return timer

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, delta: timedelta) -> int:
        """
        Move the virtual clock forward and fire every timer that falls due.

        Timers created by callbacks during the advance also fire if they fall
        due before the target time.

        Parameters
        ----------
        delta
            Amount of virtual time to advance. Must not be negative.

        Returns
        -------
        int
            Number of callbacks executed.
        """
        if delta < timedelta(0):
            raise ValueError("Cannot advance virtual time backwards")

        with self._lock:
            target = self._now + delta

        fired = 0
        while True:
            with self._lock:
                timer = self._pop_due(target)
                if timer is None:
                    self._now = target
                    return fired
                self._now = max(self._now, timer.due_at)

            # Callbacks run without holding the provider lock so they may
            # schedule new timers or read now().
            timer.fire()
            fired += 1

    def pending_count(self) -> int:
        """Number of scheduled timers that are neither fired nor cancelled."""
        with self._lock:
            return sum(1 for _, _, t in self._heap if not t.cancelled and not t.fired)

    def _pop_due(self, target: datetime) -> Optional[VirtualTimer]:
        while self._heap:
            due_at, _, timer = self._heap[0]
            if due_at > target:
                return None
            heapq.heappop(self._heap)
            if not timer.cancelled:
                return timer
        return None
