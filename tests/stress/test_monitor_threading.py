"""
Stress tests for ValueMonitor concurrency.

These tests attempt to surface race conditions by driving the monitor from
multiple threads concurrently. They validate safety properties such as:
- no exceptions during concurrent notify/acknowledge/query/register calls
- the triggered/cleared event stream stays balanced per alarm key
- delayed expiry on real timer threads never double-triggers
- subscribers calling back into the monitor do not deadlock

Notes
-----
Threading tests are probabilistic: they increase confidence but do not prove
the absence of races. Run multiple times for higher confidence.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from datetime import timedelta
from typing import List

import pytest

from valuemonitor.core.alarm import common_conditions as cc
from valuemonitor.core.monitor import ValueMonitor
from valuemonitor.core.timing.timer_provider import ThreadingTimerProvider, VirtualTimerProvider
from valuemonitor.domain.errors import UnregisteredVariableError
from valuemonitor.domain.events import AlarmEvent


def _run_threads(threads: List[threading.Thread], timeout: float = 20.0) -> None:
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=timeout)
    assert all(not t.is_alive() for t in threads), "A thread did not finish (possible deadlock)"


@pytest.mark.stress
def test_concurrent_notifications_keep_event_stream_balanced() -> None:
    """
    Each alarm key must alternate triggered/cleared, whatever the interleaving.

    With one threshold per variable, the number of triggered events minus
    cleared events must equal the number of finally active alarms.
    """
    monitor = ValueMonitor(timer_provider=VirtualTimerProvider())
    lock = threading.Lock()
    counts: Counter = Counter()

    def on_event(event: AlarmEvent) -> None:
        with lock:
            counts[(event.variable_id, event.is_active)] += 1

    monitor.alarm_triggered.subscribe(on_event)
    monitor.alarm_cleared.subscribe(on_event)

    variables = [f"v{i}" for i in range(4)]
    for vid in variables:
        monitor.register_variable(vid, vid, 0.0, [cc.on_high_value(50.0, "high")])

    start = threading.Barrier(8)
    errors: List[BaseException] = []

    def writer(tid: int) -> None:
        try:
            start.wait()
            for k in range(2000):
                vid = variables[(tid + k) % len(variables)]
                monitor.notify_value_changed(vid, float((k * 37 + tid) % 100))
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
    _run_threads(threads)

    if errors:
        raise AssertionError(f"Concurrency test caught exceptions: {errors!r}")

    active = {a.variable_id for a in monitor.get_active_alarms()}
    for vid in variables:
        balance = counts[(vid, True)] - counts[(vid, False)]
        assert balance == (1 if vid in active else 0)


@pytest.mark.stress
def test_concurrent_mixed_operations_no_exceptions() -> None:
    """
    Readers, writers, acknowledgers and re-registrations running together
    should only ever raise UnregisteredVariableError (from ids being swapped).
    """
    monitor = ValueMonitor(timer_provider=VirtualTimerProvider())
    monitor.register_variable("t", "T", 0.0, [cc.on_high_value(50.0, "hi"), cc.on_high_value_hysteresis(80.0, 60.0, "band")])

    start = threading.Barrier(5)
    errors: List[BaseException] = []

    def guarded(fn) -> None:
        try:
            start.wait()
            for k in range(1500):
                try:
                    fn(k)
                except UnregisteredVariableError:
                    pass
        except BaseException as e:
            errors.append(e)

    def notify(k: int) -> None:
        monitor.notify_value_changed("t", float(k % 100))

    def acknowledge(k: int) -> None:
        monitor.acknowledge_all_alarms("t")

    def read(k: int) -> None:
        monitor.get_active_alarms()
        monitor.get_registered_variables()
        monitor.get_current_value("t")

    def reregister(k: int) -> None:
        if k % 50 == 0:
            monitor.register_variable("t", "T", 0.0, [cc.on_high_value(50.0, "hi")])

    threads = [
        threading.Thread(target=guarded, args=(notify,)),
        threading.Thread(target=guarded, args=(notify,)),
        threading.Thread(target=guarded, args=(acknowledge,)),
        threading.Thread(target=guarded, args=(read,)),
        threading.Thread(target=guarded, args=(reregister,)),
    ]
    _run_threads(threads)

    if errors:
        raise AssertionError(f"Concurrency test caught exceptions: {errors!r}")
    assert len(monitor.get_registered_variables()) == 1


@pytest.mark.stress
def test_reentrant_subscribers_across_threads_do_not_deadlock() -> None:
    monitor = ValueMonitor(timer_provider=VirtualTimerProvider())
    for vid in ("a", "b"):
        monitor.register_variable(vid, vid, 0.0, [cc.on_high_value(50.0, "hi")])

    def ack_other(event: AlarmEvent) -> None:
        other = "b" if event.variable_id == "a" else "a"
        monitor.acknowledge_alarm(other, event.alarm_type, event.direction, event.condition_index)
        monitor.get_active_alarms()

    monitor.alarm_triggered.subscribe(ack_other)

    def writer(vid: str) -> None:
        for k in range(2000):
            monitor.notify_value_changed(vid, 90.0 if k % 2 else 10.0)

    _run_threads([threading.Thread(target=writer, args=(v,)) for v in ("a", "b")])


@pytest.mark.stress
def test_delayed_expiry_on_timer_threads_triggers_once() -> None:
    """
    Real timer threads racing with notifications must not double-trigger.
    """
    monitor = ValueMonitor(timer_provider=ThreadingTimerProvider())
    triggered: List[AlarmEvent] = []
    lock = threading.Lock()

    def on_triggered(event: AlarmEvent) -> None:
        with lock:
            triggered.append(event)

    monitor.alarm_triggered.subscribe(on_triggered)
    monitor.register_variable("t", "T", 0.0, [cc.on_high_value_delayed(50.0, timedelta(milliseconds=50), "hot")])

    stop = threading.Event()

    def writer() -> None:
        while not stop.is_set():
            monitor.notify_value_changed("t", 90.0)

    threads = [threading.Thread(target=writer) for _ in range(3)]
    for t in threads:
        t.start()
    time.sleep(0.3)
    stop.set()
    for t in threads:
        t.join(timeout=5)

    assert len(triggered) == 1
    assert triggered[0].previous_value is None
    assert len(monitor.get_active_alarms("t")) == 1

    monitor.notify_value_changed("t", 10.0)
    assert monitor.get_active_alarms("t") == []
    assert monitor.time_remaining("t", 0) is None
    monitor.close()


@pytest.mark.stress
def test_unregister_during_pending_real_timer_is_silent() -> None:
    monitor = ValueMonitor(timer_provider=ThreadingTimerProvider())
    triggered: List[AlarmEvent] = []
    monitor.alarm_triggered.subscribe(triggered.append)
    monitor.register_variable("t", "T", 0.0, [cc.on_high_value_delayed(50.0, timedelta(milliseconds=50), "hot")])

    monitor.notify_value_changed("t", 90.0)
    monitor.unregister_variable("t")
    time.sleep(0.2)

    assert triggered == []
    assert monitor.get_active_alarms() == []
