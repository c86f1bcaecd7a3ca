"""
Unit tests for valuemonitor.core.alarm.alarm_base.

Validates:
- AlarmKey is hashable and distinguishes condition indexes
- compile_condition produces the right variant, tests and thresholds
- threshold literal type checking against the variable's value kind
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from valuemonitor.core.alarm.alarm_base import AlarmKey, ConditionKind, compile_condition
from valuemonitor.core.alarm.conditions import (
    DelayedCondition,
    HysteresisCondition,
    PredicateCondition,
    ThresholdCondition,
    ValueChangeCondition,
)
from valuemonitor.domain.errors import TypeMismatchError
from valuemonitor.domain.models import AlarmDirection, AlarmType, ValueKind, VariableRegistration

UP = AlarmDirection.UPPER_BOUND
DOWN = AlarmDirection.LOWER_BOUND


def _reg(value, kind: ValueKind) -> VariableRegistration:
    """Build a registration snapshot for compile tests."""
    return VariableRegistration(id="v", name="V", value_kind=kind, current_value=value, value_type=type(value))


NUM = _reg(0.0, ValueKind.NUMBER)


def test_alarm_key_hashable_and_index_sensitive() -> None:
    a = AlarmKey(0, UP, AlarmType.WARNING)
    b = AlarmKey(0, UP, AlarmType.WARNING)
    c = AlarmKey(1, UP, AlarmType.WARNING)

    assert a == b
    assert len({a, b, c}) == 2


def test_compiled_threshold_is_strict() -> None:
    up = compile_condition(ThresholdCondition(AlarmType.WARNING, UP, 80.0, "hi"), 0, NUM)
    down = compile_condition(ThresholdCondition(AlarmType.WARNING, DOWN, 10.0, "lo"), 1, NUM)

    assert up.kind is ConditionKind.THRESHOLD
    assert up.threshold_value == 80.0
    assert up.evaluate(None, 80.1)
    assert not up.evaluate(None, 80.0)
    assert down.evaluate(None, 9.9)
    assert not down.evaluate(None, 10.0)
    assert down.key == AlarmKey(1, DOWN, AlarmType.WARNING)


def test_compiled_predicate_ignores_old_value() -> None:
    cond = compile_condition(PredicateCondition(AlarmType.INFO, lambda v: v > 5, "p"), 0, NUM)
    assert cond.kind is ConditionKind.PREDICATE
    assert cond.direction is AlarmDirection.CUSTOM
    assert cond.evaluate(100, 6)
    assert not cond.evaluate(100, 5)


def test_compiled_value_change_uses_both_values() -> None:
    cond = compile_condition(ValueChangeCondition(AlarmType.INFO, lambda o, n: n - o > 10, "c"), 2, NUM)
    assert cond.kind is ConditionKind.VALUE_CHANGE
    assert cond.evaluate(20.0, 85.0)
    assert not cond.evaluate(80.0, 85.0)
    assert cond.threshold_value is None


def test_compiled_hysteresis_has_clear_test() -> None:
    cond = compile_condition(HysteresisCondition(AlarmType.WARNING, UP, 85.0, 75.0, "h"), 0, NUM)
    assert cond.kind is ConditionKind.HYSTERESIS
    assert cond.threshold_value == 85.0
    assert cond.evaluate(None, 90.0)
    assert cond.clear_test is not None
    assert cond.clear_test(75.0)
    assert not cond.clear_test(75.1)


def test_compiled_lower_hysteresis_clear_test() -> None:
    cond = compile_condition(HysteresisCondition(AlarmType.WARNING, DOWN, 10.0, 20.0, "h"), 0, NUM)
    assert cond.evaluate(None, 9.0)
    assert cond.clear_test(20.0)
    assert not cond.clear_test(19.9)


def test_compiled_delayed_wraps_inner_test() -> None:
    delayed = DelayedCondition(ThresholdCondition(AlarmType.ALARM, UP, 85.0, "hot"), timedelta(seconds=5))
    cond = compile_condition(delayed, 3, NUM)

    assert cond.kind is ConditionKind.DELAYED
    assert cond.delay == timedelta(seconds=5)
    assert cond.key == AlarmKey(3, UP, AlarmType.ALARM)
    assert cond.evaluate(None, 90.0)


def test_threshold_literal_kind_must_match_variable() -> None:
    with pytest.raises(TypeMismatchError):
        compile_condition(ThresholdCondition(AlarmType.WARNING, UP, "80", "x"), 0, NUM)


def test_threshold_on_unordered_variable_rejected() -> None:
    flag = _reg(True, ValueKind.BOOLEAN)
    with pytest.raises(TypeMismatchError):
        compile_condition(ThresholdCondition(AlarmType.WARNING, UP, 1, "x"), 0, flag)


def test_delayed_threshold_literal_checked() -> None:
    delayed = DelayedCondition(ThresholdCondition(AlarmType.WARNING, UP, "x", "x"), timedelta(seconds=1))
    with pytest.raises(TypeMismatchError):
        compile_condition(delayed, 0, NUM)


def test_hysteresis_literal_checked() -> None:
    text = _reg("abc", ValueKind.STRING)
    with pytest.raises(TypeMismatchError):
        compile_condition(HysteresisCondition(AlarmType.WARNING, UP, 85.0, 75.0, "h"), 0, text)


def test_int_threshold_accepted_on_float_variable() -> None:
    cond = compile_condition(ThresholdCondition(AlarmType.WARNING, UP, 80, "hi"), 0, NUM)
    assert cond.evaluate(None, 80.5)


def test_unknown_condition_type_rejected() -> None:
    with pytest.raises(TypeMismatchError):
        compile_condition(object(), 0, NUM)  # type: ignore[arg-type]
