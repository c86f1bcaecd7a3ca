"""
Factory helpers for frequently used conditions.

Each helper returns one of the five declarative condition kinds, so anything
built here is accepted by
:meth:`~valuemonitor.core.monitor.ValueMonitor.register_variable` as is.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Any

from valuemonitor.core.alarm.conditions import (
    DelayedCondition,
    HysteresisCondition,
    InnerCondition,
    PredicateCondition,
    ThresholdCondition,
    ValueChangeCondition,
)
from valuemonitor.domain.models import AlarmDirection, AlarmType


# --- Boolean conditions ---
def on_true(alarm_type: AlarmType, message: str) -> PredicateCondition:
    return PredicateCondition(alarm_type, lambda value: value is True, message)


def on_false(alarm_type: AlarmType, message: str) -> PredicateCondition:
    return PredicateCondition(alarm_type, lambda value: value is False, message)


def on_boolean_change(alarm_type: AlarmType, from_value: bool, to_value: bool, message: str) -> ValueChangeCondition:
    """Alarm when a boolean flips from ``from_value`` to ``to_value``."""
    return ValueChangeCondition(
        alarm_type,
        lambda old, new: old == from_value and new == to_value,
        message,
    )


# --- String conditions ---
def on_string_equals(alarm_type: AlarmType, target: str, message: str) -> PredicateCondition:
    """Case-insensitive string equality."""
    folded = target.casefold()
    return PredicateCondition(
        alarm_type,
        lambda value: isinstance(value, str) and value.casefold() == folded,
        message,
    )


def on_string_contains(alarm_type: AlarmType, fragment: str, message: str) -> PredicateCondition:
    return PredicateCondition(
        alarm_type,
        lambda value: isinstance(value, str) and fragment in value,
        message,
    )


def on_string_empty(alarm_type: AlarmType, message: str) -> PredicateCondition:
    return PredicateCondition(alarm_type, lambda value: not value, message)


# --- Numeric conditions ---
def on_value_jump(alarm_type: AlarmType, threshold: float, message: str) -> ValueChangeCondition:
    """Alarm when ``abs(new - old) > threshold``."""
    return ValueChangeCondition(
        alarm_type,
        lambda old, new: abs(new - old) > threshold,
        message,
    )


def on_value_increase(alarm_type: AlarmType, message: str) -> ValueChangeCondition:
    return ValueChangeCondition(alarm_type, lambda old, new: new > old, message)


def on_value_decrease(alarm_type: AlarmType, message: str) -> ValueChangeCondition:
    return ValueChangeCondition(alarm_type, lambda old, new: new < old, message)


def on_high_value(threshold: Any, message: str, alarm_type: AlarmType = AlarmType.WARNING) -> ThresholdCondition:
    return ThresholdCondition(alarm_type, AlarmDirection.UPPER_BOUND, threshold, message)


def on_low_value(threshold: Any, message: str, alarm_type: AlarmType = AlarmType.WARNING) -> ThresholdCondition:
    return ThresholdCondition(alarm_type, AlarmDirection.LOWER_BOUND, threshold, message)


# --- Enum conditions ---
def on_enum_equals(alarm_type: AlarmType, target: Enum, message: str) -> PredicateCondition:
    return PredicateCondition(alarm_type, lambda value: value == target, message)


def on_enum_change(alarm_type: AlarmType, from_value: Enum, to_value: Enum, message: str) -> ValueChangeCondition:
    return ValueChangeCondition(
        alarm_type,
        lambda old, new: old == from_value and new == to_value,
        message,
    )


# --- Time-based conditions ---
def with_delay(condition: InnerCondition, delay: timedelta) -> DelayedCondition:
    return DelayedCondition(inner=condition, delay=delay)


def on_high_value_delayed(
    threshold: Any,
    delay: timedelta,
    message: str,
    alarm_type: AlarmType = AlarmType.WARNING,
) -> DelayedCondition:
    """Upper-bound threshold that must be exceeded for ``delay`` before alarming."""
    return with_delay(on_high_value(threshold, message, alarm_type), delay)


def on_low_value_delayed(
    threshold: Any,
    delay: timedelta,
    message: str,
    alarm_type: AlarmType = AlarmType.WARNING,
) -> DelayedCondition:
    return with_delay(on_low_value(threshold, message, alarm_type), delay)


def on_high_value_hysteresis(
    trigger: Any,
    clear: Any,
    message: str,
    alarm_type: AlarmType = AlarmType.WARNING,
) -> HysteresisCondition:
    """Triggers above ``trigger`` and clears at or below ``clear``."""
    return HysteresisCondition(alarm_type, AlarmDirection.UPPER_BOUND, trigger, clear, message)


def on_low_value_hysteresis(
    trigger: Any,
    clear: Any,
    message: str,
    alarm_type: AlarmType = AlarmType.WARNING,
) -> HysteresisCondition:
    """Triggers below ``trigger`` and clears at or above ``clear``."""
    return HysteresisCondition(alarm_type, AlarmDirection.LOWER_BOUND, trigger, clear, message)
