from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, List

import structlog

from valuemonitor.domain.events import AlarmEvent

logger = structlog.stdlib.get_logger()

AlarmSubscriber = Callable[[AlarmEvent], None]


@dataclass
class EventChannel:
    """
    In-process observer registry for alarm events.

    The channel provides a simple synchronous publish/subscribe mechanism:
    - Consumers register callbacks via :meth:`subscribe`.
    - Producers call :meth:`publish`, which invokes every callback in
      subscription order on the publishing thread.

    Concurrency Model
    -----------------
    The subscriber list is guarded by a lock, but :meth:`publish` iterates a
    snapshot taken under the lock and calls subscribers without holding it,
    so a subscriber may subscribe, unsubscribe or call back into the monitor.

    Error Policy
    ------------
    With ``isolate_errors=False`` the first subscriber exception propagates
    to the publisher and the remaining subscribers are skipped. With
    ``isolate_errors=True`` the exception is logged and dispatch continues.

    Attributes
    ----------
    name
        Channel name used in log records (e.g. "alarm_triggered").
    isolate_errors
        Whether subscriber exceptions are logged instead of propagated.
    """

    name: str
    isolate_errors: bool = False
    _subscribers: List[AlarmSubscriber] = field(default_factory=list, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def subscribe(self, callback: AlarmSubscriber) -> AlarmSubscriber:
        """
        Register a callback. The same callback may be registered twice.

        Returns
        -------
        callable
            The callback, so the method can be used as a decorator.
        """
        with self._lock:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: AlarmSubscriber) -> bool:
        """
        Remove the earliest registration of ``callback``.

        Returns
        -------
        bool
            True if a registration was removed.
        """
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                return False
            return True

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: AlarmEvent) -> None:
        """
        Deliver ``event`` to every subscriber, in subscription order.

        Parameters
        ----------
        event
            AlarmEvent to deliver.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            if not self.isolate_errors:
                callback(event)
                continue
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "subscriber_failed",
                    channel=self.name,
                    variable_id=event.variable_id,
                    condition_index=event.condition_index,
                )
