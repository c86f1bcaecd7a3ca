"""
Delay tracking for delayed conditions.

A :class:`ConditionTimer` starts counting when its wrapped condition becomes
true and invokes an expiry callback once the condition has stayed true for the
whole delay. If the condition drops before that, the timer resets and the next
occurrence starts again from zero.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from valuemonitor.core.timing.timer_provider import TimerHandle, TimerProvider


class ConditionTimer:
    """
    Per-condition delay state machine.

    Concurrency Model
    -----------------
    Fields are guarded by an internal lock. The expiry callback is invoked
    *outside* that lock, from the timer provider's execution context. Each
    scheduled callback carries a generation number so a callback that fires
    after a reset (or a re-arm) is ignored.

    Parameters
    ----------
    timer_provider
        Provider used to schedule the expiry callback and read the time.
    delay
        How long the condition must stay true. Must be positive.
    on_delay_expired
        Called once when the delay elapses while the condition is still true.
    """

    def __init__(
        self,
        timer_provider: TimerProvider,
        delay: timedelta,
        on_delay_expired: Callable[[], None],
    ) -> None:
        self._provider = timer_provider
        self._delay = delay
        self._on_delay_expired = on_delay_expired
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._disposed = False

        self.condition_met = False
        self.delay_expired = False
        self.first_met_at: Optional[datetime] = None

    @property
    def delay(self) -> timedelta:
        return self._delay

    def on_condition_changed(self, is_active: bool) -> None:
        """
        Feed the latest raw result of the wrapped condition.

        Repeated identical notifications are no-ops.

        Parameters
        ----------
        is_active
            Whether the wrapped condition currently holds.
        """
        with self._lock:
            if self._disposed:
                return
            if is_active and not self.condition_met:
                self.condition_met = True
                self.first_met_at = self._provider.now()
                self._cancel_locked()
                self._generation += 1
                generation = self._generation
                self._handle = self._provider.create_timer(
                    lambda: self._expire(generation), self._delay
                )
            elif not is_active and self.condition_met:
                self._reset_locked()

    def reset(self) -> None:
        """Return to the initial state and cancel any pending callback."""
        with self._lock:
            self._reset_locked()

    def time_remaining(self) -> Optional[timedelta]:
        """
        Remaining delay before expiry.

        Returns
        -------
        timedelta or None
            None if the condition is not met or the delay already expired,
            otherwise ``max(0, delay - elapsed)``.
        """
        with self._lock:
            if not self.condition_met or self.delay_expired or self.first_met_at is None:
                return None
            remaining = self._delay - (self._provider.now() - self.first_met_at)
            return max(remaining, timedelta(0))

    def dispose(self) -> None:
        """Cancel any pending callback. Safe to call more than once."""
        with self._lock:
            self._disposed = True
            self._cancel_locked()

    def _expire(self, generation: int) -> None:
        with self._lock:
            if self._disposed or generation != self._generation or not self.condition_met:
                return
            self.delay_expired = True
            self._handle = None
        self._on_delay_expired()

    def _reset_locked(self) -> None:
        self.condition_met = False
        self.delay_expired = False
        self.first_met_at = None
        self._generation += 1
        self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
