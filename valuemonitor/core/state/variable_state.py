"""
Per-variable evaluation state.

Everything the monitor mutates for one variable id lives in a single
:class:`VariableState` guarded by its own re-entrant lock, so updates to
different variables never block each other.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Set

from valuemonitor.core.alarm.alarm_base import CompiledCondition
from valuemonitor.core.state.alarm_store import AlarmStore
from valuemonitor.core.timing.condition_timer import ConditionTimer
from valuemonitor.domain.models import VariableRegistration


@dataclass
class VariableState:
    """
    Mutable state of one registered variable.

    Concurrency Model
    -----------------
    All fields are read and written while holding :attr:`lock`. Callers
    collect whatever they need for notifications while holding the lock and
    publish only after releasing it.

    Attributes
    ----------
    registration
        Current registration snapshot (replaced on every value change).
    conditions
        Compiled conditions in registration order.
    alarms
        Active alarms of this variable.
    hysteresis_active
        Indexes of hysteresis conditions currently past their trigger bound.
    timers
        Condition timers of delayed conditions, keyed by condition index.
    disposed
        Set once the variable is unregistered or replaced; a disposed state
        must not emit further events.
    """

    registration: VariableRegistration
    conditions: List[CompiledCondition] = field(default_factory=list)
    alarms: AlarmStore = field(default_factory=AlarmStore)
    hysteresis_active: Set[int] = field(default_factory=set)
    timers: Dict[int, ConditionTimer] = field(default_factory=dict)
    disposed: bool = False

    lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    @property
    def variable_id(self) -> str:
        return self.registration.id

    @property
    def current_value(self) -> Any:
        return self.registration.current_value

    def store_value(self, value: Any) -> Any:
        """
        Replace the current value and return the previous one.

        Must be called with :attr:`lock` held.
        """
        old_value = self.registration.current_value
        self.registration = replace(self.registration, current_value=value)
        return old_value

    def dispose(self) -> None:
        """Cancel all condition timers and drop active alarms. Idempotent."""
        with self.lock:
            self.disposed = True
            for timer in self.timers.values():
                timer.dispose()
            self.alarms.clear()
            self.hysteresis_active.clear()
