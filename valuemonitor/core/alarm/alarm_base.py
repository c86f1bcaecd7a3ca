"""
Alarm evaluation contracts (alarm keys and compiled conditions).

This module defines the internal, evaluable form of a condition and the key
that identifies the alarm it raises:

- Declarative conditions (:mod:`valuemonitor.core.alarm.conditions`) are
  compiled by :func:`compile_condition` into a -> class:`CompiledCondition`
- The monitor (stateful lifecycle manager) evaluates compiled conditions and
  tracks active alarms by -> class:`AlarmKey`

Compiled conditions are immutable. All mutable evaluation state (hysteresis
activation, delay timers, active alarms) lives in the per-variable state, not
here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Optional

from valuemonitor.core.alarm.conditions import (
    Condition,
    DelayedCondition,
    HysteresisCondition,
    PredicateCondition,
    ThresholdCondition,
    ValueChangeCondition,
)
from valuemonitor.domain.errors import TypeMismatchError
from valuemonitor.domain.models import (
    ORDERED_KINDS,
    AlarmDirection,
    AlarmType,
    VariableRegistration,
    kind_of,
)

ChangeTest = Callable[[Any, Any], bool]


class ConditionKind(str, Enum):
    """Tag of the compiled condition variant."""

    THRESHOLD = "THRESHOLD"
    PREDICATE = "PREDICATE"
    VALUE_CHANGE = "VALUE_CHANGE"
    DELAYED = "DELAYED"
    HYSTERESIS = "HYSTERESIS"


@dataclass(frozen=True)
class AlarmKey:
    """
    Unique identifier for an alarm instance within one variable.

    Two conditions with the same classification and direction on the same
    variable are still distinct because their indexes differ.

    Notes
    -----
    This object is **immutable and hashable** (frozen dataclass), which allows
    it to be used directly as a dictionary key.

    Parameters
    ----------
    condition_index
        Position of the condition in the variable's condition list.
    direction
        Direction of the condition.
    alarm_type
        Classification of the condition.
    """

    condition_index: int
    direction: AlarmDirection
    alarm_type: AlarmType


@dataclass(frozen=True)
class CompiledCondition:
    """
    Evaluable condition bound to its position in a variable's condition list.

    Parameters
    ----------
    index
        Position in the variable's condition list.
    kind
        Which of the five condition variants this is.
    alarm_type
        Classification of the raised alarm.
    direction
        Direction of the condition (CUSTOM for predicate/value-change).
    message
        Alarm message.
    test
        Raw test over ``(old_value, new_value)``. For hysteresis this is the
        trigger test; for delayed conditions it is the wrapped test.
    threshold_value
        Threshold reported in alarms, if any.
    clear_test
        Hysteresis only: returns True once the value is back to-or-past the
        clear threshold.
    delay
        Delayed only: required duration.
    """

    index: int
    kind: ConditionKind
    alarm_type: AlarmType
    direction: AlarmDirection
    message: str
    test: ChangeTest
    threshold_value: Optional[Any] = None
    clear_test: Optional[Callable[[Any], bool]] = None
    delay: Optional[timedelta] = None

    @property
    def key(self) -> AlarmKey:
        return AlarmKey(condition_index=self.index, direction=self.direction, alarm_type=self.alarm_type)

    def evaluate(self, old_value: Any, new_value: Any) -> bool:
        """Return the raw boolean result of the condition's test."""
        return bool(self.test(old_value, new_value))


def _check_threshold_literal(literal: Any, variable: VariableRegistration) -> None:
    if variable.value_kind not in ORDERED_KINDS:
        raise TypeMismatchError(
            f"Threshold conditions require an ordered value kind, "
            f"variable {variable.id!r} is {variable.value_kind.value}"
        )
    if kind_of(literal) is not variable.value_kind:
        raise TypeMismatchError(
            f"Threshold value must be of kind {variable.value_kind.value}, got {type(literal).__name__}"
        )


def _bound_test(direction: AlarmDirection, threshold: Any) -> ChangeTest:
    if direction is AlarmDirection.UPPER_BOUND:
        return lambda old, new: new > threshold
    if direction is AlarmDirection.LOWER_BOUND:
        return lambda old, new: new < threshold
    raise TypeMismatchError(f"Invalid direction for threshold: {direction}")


def _clear_test(direction: AlarmDirection, clear_threshold: Any) -> Callable[[Any], bool]:
    if direction is AlarmDirection.UPPER_BOUND:
        return lambda value: value <= clear_threshold
    return lambda value: value >= clear_threshold


def _inner_test(condition: Condition, variable: VariableRegistration) -> ChangeTest:
    if isinstance(condition, ThresholdCondition):
        _check_threshold_literal(condition.threshold, variable)
        return _bound_test(condition.direction, condition.threshold)
    if isinstance(condition, PredicateCondition):
        predicate = condition.condition
        return lambda old, new: predicate(new)
    if isinstance(condition, ValueChangeCondition):
        return condition.condition
    raise TypeMismatchError(f"Unsupported condition type: {type(condition).__name__}")


def compile_condition(condition: Condition, index: int, variable: VariableRegistration) -> CompiledCondition:
    """
    Build the evaluable form of a declarative condition.

    Parameters
    ----------
    condition
        Any of the five condition kinds.
    index
        Position of the condition in the variable's condition list.
    variable
        Registration the condition is attached to. Its value kind is used to
        validate threshold literals.

    Returns
    -------
    CompiledCondition
        Immutable, evaluable condition.

    Raises
    ------
    TypeMismatchError
        If a threshold literal does not match the variable's value kind, the
        kind is not ordered, or the condition type is unknown.

    Notes
    -----
    Threshold literals are checked by value kind, not by concrete type. An
    ``int`` threshold is accepted on a ``float`` variable since both are
    NUMBER, while a ``str`` threshold on a NUMBER variable is rejected.
    """
    if isinstance(condition, HysteresisCondition):
        _check_threshold_literal(condition.trigger_threshold, variable)
        return CompiledCondition(
            index=index,
            kind=ConditionKind.HYSTERESIS,
            alarm_type=condition.alarm_type,
            direction=condition.direction,
            message=condition.message,
            test=_bound_test(condition.direction, condition.trigger_threshold),
            threshold_value=condition.trigger_threshold,
            clear_test=_clear_test(condition.direction, condition.clear_threshold),
        )

    if isinstance(condition, DelayedCondition):
        return CompiledCondition(
            index=index,
            kind=ConditionKind.DELAYED,
            alarm_type=condition.alarm_type,
            direction=condition.direction,
            message=condition.message,
            test=_inner_test(condition.inner, variable),
            threshold_value=condition.threshold,
            delay=condition.delay,
        )

    kinds = {
        ThresholdCondition: ConditionKind.THRESHOLD,
        PredicateCondition: ConditionKind.PREDICATE,
        ValueChangeCondition: ConditionKind.VALUE_CHANGE,
    }
    kind = kinds.get(type(condition))
    if kind is None:
        raise TypeMismatchError(f"Unsupported condition type: {type(condition).__name__}")

    return CompiledCondition(
        index=index,
        kind=kind,
        alarm_type=condition.alarm_type,
        direction=condition.direction,
        message=condition.message,
        test=_inner_test(condition, variable),
        threshold_value=condition.threshold if isinstance(condition, ThresholdCondition) else None,
    )
