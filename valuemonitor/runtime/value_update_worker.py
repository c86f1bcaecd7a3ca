from __future__ import annotations

import threading
from queue import Empty, Queue
from typing import Any, Tuple, Union

import structlog

from valuemonitor.core.monitor import ValueMonitor
from valuemonitor.domain.events import ValueChangedEvent

logger = structlog.stdlib.get_logger()

IncomingUpdate = Union[ValueChangedEvent, Tuple[str, Any]]


class ValueUpdateWorker:
    """
    Worker thread that feeds queued value updates into a monitor.

    Responsibilities
    ----------------
    - Consume updates from a queue, either a ValueChangedEvent or a
      ``(variable_id, value)`` tuple.
    - Delegate to :meth:`ValueMonitor.notify_value_changed_event` or
      :meth:`ValueMonitor.notify_value_changed` respectively.

    Concurrency Model
    -----------------
    - The thread polls the queue with a timeout to remain responsive to stop signals.
    - Exceptions raised by the monitor (including propagated subscriber
      errors) are logged and the loop continues.

    Parameters
    ----------
    monitor
        Monitor receiving the updates.
    updates_q
        Queue of incoming updates.
    stop_event
        Thread stop signal. When set, the worker exits its loop.
    """

    def __init__(
        self,
        monitor: ValueMonitor,
        updates_q: "Queue[IncomingUpdate]",
        stop_event: threading.Event,
    ):
        self._monitor = monitor
        self._q = updates_q
        self._stop = stop_event
        self._thread = threading.Thread(target=self._run, name="value-update-worker", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _handle(self, update: IncomingUpdate) -> None:
        if isinstance(update, ValueChangedEvent):
            self._monitor.notify_value_changed_event(update)
        else:
            variable_id, value = update
            self._monitor.notify_value_changed(variable_id, value)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                update = self._q.get(timeout=0.1)
            except Empty:
                continue

            try:
                self._handle(update)
            except Exception:
                logger.exception("value_update_failed", update=repr(update))
            finally:
                self._q.task_done()
