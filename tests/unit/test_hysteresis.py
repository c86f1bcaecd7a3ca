"""
Unit tests for hysteresis conditions on ValueMonitor.

Validates trigger/clear bands in both directions, the "no re-trigger while
active" policy, and the interaction with acknowledgment.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Tuple

from valuemonitor.core.alarm import common_conditions as cc
from valuemonitor.core.monitor import ValueMonitor
from valuemonitor.core.timing.timer_provider import VirtualTimerProvider
from valuemonitor.domain.events import AlarmEvent
from valuemonitor.domain.models import AlarmDirection, AlarmType

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _mk_monitor(condition, initial: float) -> Tuple[ValueMonitor, List[AlarmEvent], List[AlarmEvent]]:
    """
    Build a monitor with one variable "t1" carrying ``condition``.

    Returns
    -------
    tuple
        (monitor, triggered events, cleared events)
    """
    monitor = ValueMonitor(timer_provider=VirtualTimerProvider(start=T0))
    triggered: List[AlarmEvent] = []
    cleared: List[AlarmEvent] = []
    monitor.alarm_triggered.subscribe(triggered.append)
    monitor.alarm_cleared.subscribe(cleared.append)
    monitor.register_variable("t1", "Temp", initial, [condition])
    return monitor, triggered, cleared


def test_upper_band_sequence() -> None:
    monitor, triggered, cleared = _mk_monitor(cc.on_high_value_hysteresis(85.0, 75.0, "hot"), 70.0)

    monitor.notify_value_changed("t1", 90.0)
    monitor.notify_value_changed("t1", 82.0)
    monitor.notify_value_changed("t1", 74.0)

    assert [e.current_value for e in triggered] == [90.0]
    assert [e.current_value for e in cleared] == [74.0]
    assert triggered[0].threshold_value == 85.0


def test_stays_active_inside_band_and_beyond_trigger() -> None:
    monitor, triggered, cleared = _mk_monitor(cc.on_high_value_hysteresis(85.0, 75.0, "hot"), 70.0)

    for value in (90.0, 80.0, 120.0, 86.0, 76.0):
        monitor.notify_value_changed("t1", value)

    assert len(triggered) == 1
    assert cleared == []
    assert len(monitor.get_active_alarms("t1")) == 1


def test_clears_at_clear_threshold_exactly() -> None:
    monitor, _, cleared = _mk_monitor(cc.on_high_value_hysteresis(85.0, 75.0, "hot"), 70.0)
    monitor.notify_value_changed("t1", 90.0)
    monitor.notify_value_changed("t1", 75.0)
    assert len(cleared) == 1


def test_trigger_threshold_is_strict() -> None:
    monitor, triggered, _ = _mk_monitor(cc.on_high_value_hysteresis(85.0, 75.0, "hot"), 70.0)
    monitor.notify_value_changed("t1", 85.0)
    assert triggered == []


def test_lower_band_sequence() -> None:
    monitor, triggered, cleared = _mk_monitor(cc.on_low_value_hysteresis(10.0, 20.0, "cold"), 30.0)

    for value in (5.0, 15.0, 19.9, 20.0):
        monitor.notify_value_changed("t1", value)

    assert [e.current_value for e in triggered] == [5.0]
    assert [e.current_value for e in cleared] == [20.0]
    assert triggered[0].direction is AlarmDirection.LOWER_BOUND


def test_retriggers_after_clear() -> None:
    monitor, triggered, cleared = _mk_monitor(cc.on_high_value_hysteresis(85.0, 75.0, "hot"), 70.0)

    for value in (90.0, 70.0, 80.0, 86.0):
        monitor.notify_value_changed("t1", value)

    assert len(triggered) == 2
    assert len(cleared) == 1


def test_acknowledge_resets_band() -> None:
    monitor, triggered, cleared = _mk_monitor(cc.on_high_value_hysteresis(85.0, 75.0, "hot"), 70.0)
    monitor.notify_value_changed("t1", 90.0)

    assert monitor.acknowledge_alarm("t1", AlarmType.WARNING, AlarmDirection.UPPER_BOUND)

    # Inside the band: not past the trigger, so nothing happens.
    monitor.notify_value_changed("t1", 80.0)
    assert len(triggered) == 1

    monitor.notify_value_changed("t1", 90.0)
    assert len(triggered) == 2
    assert cleared == []
