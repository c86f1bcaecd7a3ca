from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from valuemonitor.core.alarm.alarm_base import AlarmKey
from valuemonitor.domain.models import ActiveAlarm


@dataclass
class AlarmStore:
    """
    In-memory store of the active alarms of one variable.

    This store maintains the active-alarm set keyed by AlarmKey, together
    with the ActiveAlarm record describing each entry.

    Notes
    -----
    - This store is intentionally simple and not thread-safe.
      Synchronization is handled by the enclosing `VariableState`.
    - :meth:`add` refuses to overwrite an existing key, so check-and-add is a
      single call.
    """

    alarms: Dict[AlarmKey, ActiveAlarm] = field(default_factory=dict)

    def __contains__(self, key: AlarmKey) -> bool:
        return key in self.alarms

    def __len__(self) -> int:
        return len(self.alarms)

    def add(self, key: AlarmKey, alarm: ActiveAlarm) -> bool:
        """
        Record an alarm as active unless the key is already active.

        Parameters
        ----------
        key
            Alarm key.
        alarm
            Active alarm record.

        Returns
        -------
        bool
            True if the alarm was added, False if the key was already active.
        """
        if key in self.alarms:
            return False
        self.alarms[key] = alarm
        return True

    def remove(self, key: AlarmKey) -> Optional[ActiveAlarm]:
        """
        Remove an active alarm.

        Returns
        -------
        ActiveAlarm or None
            The removed record, or None if the key was not active.
        """
        return self.alarms.pop(key, None)

    def active(self) -> List[ActiveAlarm]:
        """Snapshot list of active alarm records."""
        return list(self.alarms.values())

    def keys(self) -> List[AlarmKey]:
        return list(self.alarms.keys())

    def clear(self) -> None:
        self.alarms.clear()
