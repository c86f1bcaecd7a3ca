"""
Domain models and enums.

This module defines the core domain-level types used across the monitor:
- Alarm classifications and directions
- The closed set of value kinds a monitored variable can carry
- VariableRegistration, describing one monitored variable
- ActiveAlarm, which represents one currently firing alarm instance

These are designed as immutable (frozen) dataclasses so snapshots can be
handed to observers and other threads without copying.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any, Optional


class AlarmType(str, Enum):
    """
    Classification (severity/category) of an alarm.

    Members
    -------
    INFO : str
        Informational condition, no action required.
    WARNING : str
        Abnormal condition requiring attention.
    ALARM : str
        Severe condition requiring immediate intervention.
    """

    INFO = "INFO"
    WARNING = "WARNING"
    ALARM = "ALARM"


class AlarmDirection(str, Enum):
    """
    Which crossing a threshold-style condition watches for.

    Members
    -------
    LOWER_BOUND : str
        Alarm when the value falls below the threshold.
    UPPER_BOUND : str
        Alarm when the value rises above the threshold.
    CUSTOM : str
        Direction-agnostic (predicate and value-change conditions).
    """

    LOWER_BOUND = "LOWER_BOUND"
    UPPER_BOUND = "UPPER_BOUND"
    CUSTOM = "CUSTOM"


class ValueKind(str, Enum):
    """
    Closed set of value kinds a variable may carry.

    The kind is decided once at registration. Threshold and hysteresis
    conditions are only accepted on ordered kinds (see :data:`ORDERED_KINDS`).
    """

    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    STRING = "STRING"
    ENUM = "ENUM"
    STRUCTURED = "STRUCTURED"


ORDERED_KINDS = frozenset({ValueKind.NUMBER, ValueKind.STRING})

_NUMBER_TYPES = (int, float, Decimal, Fraction)


def kind_of(value: Any) -> ValueKind:
    """
    Infer the :class:`ValueKind` of a Python value.

    ``bool`` and ``Enum`` are checked first because they subclass ``int``/``str``.

    Parameters
    ----------
    value
        Any non-None value.

    Returns
    -------
    ValueKind
        The inferred kind; STRUCTURED for anything not otherwise recognized.
    """
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, Enum):
        return ValueKind.ENUM
    if isinstance(value, _NUMBER_TYPES):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    return ValueKind.STRUCTURED


@dataclass(frozen=True)
class VariableRegistration:
    """
    A monitored variable as seen from outside the engine.

    Parameters
    ----------
    id
        Unique variable identifier.
    name
        Display name.
    value_kind
        Declared value kind, fixed at registration.
    current_value
        Last stored value (initial value until the first notification).
    value_type
        Concrete Python type of the initial value. Used to pin enum classes.
    """

    id: str
    name: str
    value_kind: ValueKind
    current_value: Any
    value_type: type = object


@dataclass(frozen=True)
class ActiveAlarm:
    """
    One currently firing alarm instance.

    'ActiveAlarm' represents "what is true now", while
    :class:`~valuemonitor.domain.events.AlarmEvent` represents "what happened".

    Parameters
    ----------
    variable_id
        Id of the variable the alarm belongs to.
    alarm_type
        Classification of the alarm.
    direction
        Direction of the condition that raised the alarm.
    message
        Human-readable alarm message.
    timestamp
        When the alarm was triggered.
    current_value
        Variable value at trigger time.
    previous_value
        Value before the triggering change. None for delayed triggers.
    threshold_value
        Threshold of the condition, if it has one.
    condition_index
        Position of the condition in the variable's condition list.
    """

    variable_id: str
    alarm_type: AlarmType
    direction: AlarmDirection
    message: str
    timestamp: datetime
    current_value: Any
    previous_value: Optional[Any] = None
    threshold_value: Optional[Any] = None
    condition_index: int = 0
