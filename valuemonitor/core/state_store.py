from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from valuemonitor.core.state.variable_state import VariableState


@dataclass
class StateStore:
    """
    Thread-safe registry of per-variable state.

    'StateStore' maps variable ids to their :class:`VariableState`. It only
    guards the mapping itself; each VariableState carries its own lock for
    the evaluation work.

    Concurrency Model
    -----------------
    The mapping is guarded by a single re-entrant lock (`threading.RLock`)
    held only for dictionary operations, never while evaluating conditions
    or calling subscribers.

    Design Notes
    ------------
    Snapshot methods return copies to avoid common iteration hazards such
    as "dict changed size during iteration".
    """

    _states: Dict[str, VariableState] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    def put(self, state: VariableState) -> Optional[VariableState]:
        """
        Insert or replace the state for ``state.variable_id``.

        Returns
        -------
        VariableState or None
            The replaced state, if any. The caller is responsible for disposing it.
        """
        with self._lock:
            previous = self._states.get(state.variable_id)
            self._states[state.variable_id] = state
            return previous

    def get(self, variable_id: str) -> Optional[VariableState]:
        with self._lock:
            return self._states.get(variable_id)

    def pop(self, variable_id: str) -> Optional[VariableState]:
        with self._lock:
            return self._states.pop(variable_id, None)

    def all(self) -> List[VariableState]:
        """Snapshot copy of all registered states."""
        with self._lock:
            return list(self._states.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
