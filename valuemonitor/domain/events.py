"""
Monitor event domain models.

An `AlarmEvent` represents *what happened* (an alarm was triggered or cleared)
at a specific time, while `ActiveAlarm` (in models.py) represents *what is
currently true*. A `ValueChangedEvent` is the inbound counterpart: a
pre-built description of a value change pushed by a collaborator.

Events are typically used for:
- logging and audit trails
- UI notification streams
- forwarding to other in-process consumers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from valuemonitor.domain.models import AlarmDirection, AlarmType


@dataclass(frozen=True)
class AlarmEvent:
    """
    Snapshot delivered to "alarm triggered" / "alarm cleared" subscribers.

    Parameters
    ----------
    variable_id
        Id of the monitored variable.
    variable_name
        Display name of the monitored variable.
    alarm_type
        Classification of the alarm.
    direction
        Direction of the condition.
    current_value
        Variable value when the transition happened.
    previous_value
        Previous variable value, if known.
    threshold_value
        Threshold of the condition, if it has one.
    message
        Human-readable description.
    timestamp
        When the transition happened.
    is_active
        True for triggered events, False for cleared events.
    condition_index
        Position of the condition in the variable's condition list.
    """

    variable_id: str
    variable_name: str
    alarm_type: AlarmType
    direction: AlarmDirection
    current_value: Any
    previous_value: Optional[Any]
    threshold_value: Optional[Any]
    message: str
    timestamp: datetime
    is_active: bool
    condition_index: int = 0


@dataclass(frozen=True)
class ValueChangedEvent:
    """
    Pre-built value change payload accepted by
    :meth:`~valuemonitor.core.monitor.ValueMonitor.notify_value_changed_event`.

    Parameters
    ----------
    variable_id
        Id of the monitored variable.
    old_value
        Value before the change, as seen by the producer.
    new_value
        Value after the change.
    timestamp
        When the producer observed the change.
    """

    variable_id: str
    old_value: Any
    new_value: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
