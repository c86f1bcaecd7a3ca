"""
Declarative alarm conditions.

Callers describe *when* a variable should alarm using one of five condition
kinds. The monitor compiles them into an evaluable form at registration time
(see :mod:`valuemonitor.core.alarm.alarm_base`).

- :class:`ThresholdCondition`   value crosses a single bound (strict comparison)
- :class:`PredicateCondition`   arbitrary test on the new value
- :class:`ValueChangeCondition` arbitrary test on the (old, new) pair
- :class:`DelayedCondition`     one of the three above, held for a duration
- :class:`HysteresisCondition`  separate trigger and clear bounds

All condition objects are frozen and validate their invariants on
construction, so an invalid condition never reaches the monitor.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Optional, Union

from valuemonitor.domain.errors import InvalidConfigurationError, NullValueError, TypeMismatchError
from valuemonitor.domain.models import ORDERED_KINDS, AlarmDirection, AlarmType, kind_of

_BOUND_DIRECTIONS = (AlarmDirection.LOWER_BOUND, AlarmDirection.UPPER_BOUND)


@dataclass(frozen=True)
class ThresholdCondition:
    """
    Alarm when the value crosses a fixed bound.

    UPPER_BOUND triggers when ``value > threshold``; LOWER_BOUND triggers when
    ``value < threshold``. Equality never triggers.

    Parameters
    ----------
    alarm_type
        Classification of the raised alarm.
    direction
        LOWER_BOUND or UPPER_BOUND. CUSTOM is rejected.
    threshold
        Bound to compare against. Must be of an ordered value kind.
    message
        Human-readable alarm message.
    """

    alarm_type: AlarmType
    direction: AlarmDirection
    threshold: Any
    message: str

    def __post_init__(self) -> None:
        if self.threshold is None:
            raise NullValueError("Threshold value must not be None")
        if self.direction not in _BOUND_DIRECTIONS:
            raise TypeMismatchError(f"Invalid direction for threshold: {self.direction}")


@dataclass(frozen=True)
class PredicateCondition:
    """
    Alarm while ``condition(value)`` is true.

    Parameters
    ----------
    alarm_type
        Classification of the raised alarm.
    condition
        Single-value boolean test.
    message
        Human-readable alarm message.
    """

    alarm_type: AlarmType
    condition: Callable[[Any], bool]
    message: str

    @property
    def direction(self) -> AlarmDirection:
        return AlarmDirection.CUSTOM


@dataclass(frozen=True)
class ValueChangeCondition:
    """
    Alarm while ``condition(old_value, new_value)`` is true.

    Parameters
    ----------
    alarm_type
        Classification of the raised alarm.
    condition
        Two-value boolean test over the previous and the new value.
    message
        Human-readable alarm message.
    """

    alarm_type: AlarmType
    condition: Callable[[Any, Any], bool]
    message: str

    @property
    def direction(self) -> AlarmDirection:
        return AlarmDirection.CUSTOM


InnerCondition = Union[ThresholdCondition, PredicateCondition, ValueChangeCondition]


@dataclass(frozen=True)
class DelayedCondition:
    """
    Alarm only after the inner condition has held continuously for ``delay``.

    The delayed condition takes over the inner condition's classification,
    message and (for thresholds) direction and threshold value.

    Parameters
    ----------
    inner
        Threshold, predicate or value-change condition to wrap.
    delay
        Required duration. Must be positive.
    """

    inner: InnerCondition
    delay: timedelta

    def __post_init__(self) -> None:
        if not isinstance(self.inner, (ThresholdCondition, PredicateCondition, ValueChangeCondition)):
            raise TypeMismatchError(
                f"Unsupported condition type for delayed conditions: {type(self.inner).__name__}"
            )
        if self.delay <= timedelta(0):
            raise InvalidConfigurationError("Delay must be positive")

    @property
    def alarm_type(self) -> AlarmType:
        return self.inner.alarm_type

    @property
    def direction(self) -> AlarmDirection:
        return self.inner.direction

    @property
    def message(self) -> str:
        return self.inner.message

    @property
    def threshold(self) -> Optional[Any]:
        if isinstance(self.inner, ThresholdCondition):
            return self.inner.threshold
        return None


@dataclass(frozen=True)
class HysteresisCondition:
    """
    Threshold alarm with distinct trigger and clear bounds.

    For UPPER_BOUND the alarm triggers when ``value > trigger_threshold`` and
    clears only once ``value <= clear_threshold``; LOWER_BOUND mirrors this.

    Invariants
    ----------
    - Both thresholds have the same Python type and an ordered value kind.
    - UPPER_BOUND: ``trigger_threshold > clear_threshold``.
    - LOWER_BOUND: ``trigger_threshold < clear_threshold``.

    Parameters
    ----------
    alarm_type
        Classification of the raised alarm.
    direction
        LOWER_BOUND or UPPER_BOUND.
    trigger_threshold
        Bound that raises the alarm.
    clear_threshold
        Bound that clears the alarm.
    message
        Human-readable alarm message.
    """

    alarm_type: AlarmType
    direction: AlarmDirection
    trigger_threshold: Any
    clear_threshold: Any
    message: str

    def __post_init__(self) -> None:
        if self.trigger_threshold is None or self.clear_threshold is None:
            raise NullValueError("Hysteresis thresholds must not be None")
        if self.direction not in _BOUND_DIRECTIONS:
            raise TypeMismatchError(f"Invalid direction for hysteresis threshold: {self.direction}")
        if type(self.trigger_threshold) is not type(self.clear_threshold):
            raise TypeMismatchError("Trigger and clear thresholds must be of the same type")
        if kind_of(self.trigger_threshold) not in ORDERED_KINDS:
            raise TypeMismatchError("Hysteresis thresholds must be orderable")

        if self.direction is AlarmDirection.UPPER_BOUND and not self.trigger_threshold > self.clear_threshold:
            raise InvalidConfigurationError(
                "For upper bound alarms, trigger threshold must be greater than clear threshold"
            )
        if self.direction is AlarmDirection.LOWER_BOUND and not self.trigger_threshold < self.clear_threshold:
            raise InvalidConfigurationError(
                "For lower bound alarms, trigger threshold must be less than clear threshold"
            )

    @property
    def threshold(self) -> Any:
        return self.trigger_threshold


Condition = Union[
    ThresholdCondition,
    PredicateCondition,
    ValueChangeCondition,
    DelayedCondition,
    HysteresisCondition,
]
