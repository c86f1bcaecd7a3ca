"""
Variable value monitor.

This module contains the stateful engine that turns value updates into alarm
lifecycle transitions:

- Callers register variables with declarative conditions.
- Callers push value updates via :meth:`ValueMonitor.notify_value_changed`.
- The monitor evaluates every condition of the variable, updates the
  active-alarm set and publishes "triggered" / "cleared" AlarmEvents to
  synchronous subscribers.

Delayed conditions do not trigger from the update itself; their
:class:`~valuemonitor.core.timing.condition_timer.ConditionTimer` calls back
into the same trigger path once the delay has elapsed.
"""

from __future__ import annotations

import functools
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Sequence

import structlog

from valuemonitor.core.alarm.alarm_base import AlarmKey, CompiledCondition, ConditionKind, compile_condition
from valuemonitor.core.alarm.conditions import (
    Condition,
    PredicateCondition,
    ThresholdCondition,
    ValueChangeCondition,
)
from valuemonitor.core.config.yaml_config import MonitorSettings
from valuemonitor.core.state.variable_state import VariableState
from valuemonitor.core.state_store import StateStore
from valuemonitor.core.timing.condition_timer import ConditionTimer
from valuemonitor.core.timing.timer_provider import ThreadingTimerProvider, TimerProvider
from valuemonitor.domain.errors import (
    InvalidConfigurationError,
    NullValueError,
    TypeMismatchError,
    UnregisteredVariableError,
)
from valuemonitor.domain.events import AlarmEvent, ValueChangedEvent
from valuemonitor.domain.models import (
    ActiveAlarm,
    AlarmDirection,
    AlarmType,
    ValueKind,
    VariableRegistration,
    kind_of,
)
from valuemonitor.runtime.event_bus import EventChannel

logger = structlog.stdlib.get_logger()


class ValueMonitor:
    """
    Variable registry and alarm lifecycle manager (TRIGGERED / CLEARED).

    Lifecycle Model
    ---------------
    For each (variable, AlarmKey) the monitor keeps at most one ActiveAlarm:

    - TRIGGERED: condition false -> true (key added, subscribers notified)
    - CLEARED:   condition true -> false (key removed, subscribers notified)
    - acknowledged: key removed silently, no notification

    Concurrency Model
    -----------------
    Each variable has its own lock (see
    :class:`~valuemonitor.core.state.variable_state.VariableState`). All
    public operations are safe to call from any thread. Events are collected
    while the lock is held and published after it is released, so a
    subscriber may call back into the monitor (e.g. to acknowledge the alarm
    it was just told about).

    Delivery order across threads is not guaranteed. Two notifications racing
    on the same variable publish on their own threads, so a subscriber may see
    a "cleared" event before the "triggered" it pairs with. Per alarm key the
    triggered and cleared counts still balance against the active set.

    Parameters
    ----------
    timer_provider
        Scheduler used for delayed conditions. Defaults to
        :class:`~valuemonitor.core.timing.timer_provider.ThreadingTimerProvider`.
    settings
        Monitor settings (subscriber error policy).
    """

    def __init__(
        self,
        timer_provider: Optional[TimerProvider] = None,
        settings: Optional[MonitorSettings] = None,
    ) -> None:
        self._timer_provider: TimerProvider = timer_provider or ThreadingTimerProvider()
        self._settings = settings or MonitorSettings()
        self._store = StateStore()

        isolate = self._settings.isolate_subscriber_errors
        self.alarm_triggered = EventChannel("alarm_triggered", isolate_errors=isolate)
        self.alarm_cleared = EventChannel("alarm_cleared", isolate_errors=isolate)

    @property
    def timer_provider(self) -> TimerProvider:
        return self._timer_provider

    # --- Registration API ---
    def register_variable(
        self,
        variable_id: str,
        name: str,
        initial_value: Any,
        conditions: Sequence[Condition] = (),
        *,
        value_kind: Optional[ValueKind] = None,
    ) -> VariableRegistration:
        """
        Register (or re-register) a variable for monitoring.

        Re-registering an id replaces its conditions, drops its active alarms
        and cancels its condition timers. Nothing is carried over.

        Parameters
        ----------
        variable_id
            Unique variable id.
        name
            Display name.
        initial_value
            Initial current value. Must not be None.
        conditions
            Any mix of the five condition kinds. A condition's position in
            this sequence is its condition index.
        value_kind
            Declared value kind. Inferred from ``initial_value`` if None.

        Returns
        -------
        VariableRegistration
            Snapshot of the new registration.

        Raises
        ------
        NullValueError
            If ``variable_id`` or ``initial_value`` is None.
        InvalidConfigurationError
            If ``variable_id`` is empty.
        TypeMismatchError
            If a threshold literal does not match the value kind, or the
            initial value does not match ``value_kind``.
        """
        if variable_id is None:
            raise NullValueError("Variable id must not be None")
        if not variable_id:
            raise InvalidConfigurationError("Variable id must not be empty")
        if initial_value is None:
            raise NullValueError(f"Initial value of {variable_id!r} must not be None")

        inferred = kind_of(initial_value)
        kind = value_kind or inferred
        if kind is not ValueKind.STRUCTURED and inferred is not kind:
            raise TypeMismatchError(
                f"Initial value of {variable_id!r} is {inferred.value}, declared {kind.value}"
            )

        registration = VariableRegistration(
            id=variable_id,
            name=name,
            value_kind=kind,
            current_value=initial_value,
            value_type=type(initial_value),
        )
        compiled = [compile_condition(c, i, registration) for i, c in enumerate(conditions)]

        state = VariableState(registration=registration, conditions=compiled)
        for cond in compiled:
            if cond.kind is ConditionKind.DELAYED:
                state.timers[cond.index] = ConditionTimer(
                    self._timer_provider,
                    cond.delay,
                    functools.partial(self._on_delay_expired, state, cond),
                )

        previous = self._store.put(state)
        if previous is not None:
            previous.dispose()

        logger.debug(
            "variable_registered",
            variable_id=variable_id,
            value_kind=kind.value,
            conditions=len(compiled),
            replaced=previous is not None,
        )
        return registration

    def register_mixed(
        self,
        variable_id: str,
        name: str,
        initial_value: Any,
        *,
        thresholds: Iterable[ThresholdCondition] = (),
        predicates: Iterable[PredicateCondition] = (),
        changes: Iterable[ValueChangeCondition] = (),
        value_kind: Optional[ValueKind] = None,
    ) -> VariableRegistration:
        """
        Register a variable with separate threshold, predicate and
        value-change lists.

        Condition indexes follow the order thresholds, predicates, changes.
        """
        conditions: List[Condition] = [*thresholds, *predicates, *changes]
        return self.register_variable(variable_id, name, initial_value, conditions, value_kind=value_kind)

    def unregister_variable(self, variable_id: str) -> bool:
        """
        Remove a variable, its conditions, active alarms and timers.

        Returns
        -------
        bool
            True if the variable was registered.
        """
        state = self._store.pop(variable_id)
        if state is None:
            return False
        state.dispose()
        logger.debug("variable_unregistered", variable_id=variable_id)
        return True

    def close(self) -> None:
        """Unregister every variable and cancel all pending condition timers."""
        for state in self._store.all():
            self.unregister_variable(state.variable_id)

    # --- Notification API ---
    def notify_value_changed(self, variable_id: str, new_value: Any) -> List[AlarmEvent]:
        """
        Store a new value and evaluate every condition of the variable.

        Parameters
        ----------
        variable_id
            Registered variable id.
        new_value
            New value. Must not be None and must match the declared kind.

        Returns
        -------
        list of AlarmEvent
            Events published by this call, in condition order.

        Raises
        ------
        UnregisteredVariableError
            If ``variable_id`` is unknown.
        NullValueError
            If ``new_value`` is None.
        TypeMismatchError
            If ``new_value`` does not match the variable's value kind.
        """
        return self._apply_change(variable_id, new_value, old_override=None, use_override=False)

    def notify_value_changed_event(self, event: ValueChangedEvent) -> List[AlarmEvent]:
        """
        Apply a pre-built value change.

        The event's ``old_value`` is used as the previous value for change
        conditions; ``new_value`` becomes the stored value.
        """
        if event.old_value is None:
            raise NullValueError(f"Old value of {event.variable_id!r} must not be None")
        return self._apply_change(event.variable_id, event.new_value, old_override=event.old_value, use_override=True)

    # --- Alarm API ---
    def acknowledge_alarm(
        self,
        variable_id: str,
        alarm_type: AlarmType,
        direction: AlarmDirection,
        condition_index: int = 0,
    ) -> bool:
        """
        Silently remove one active alarm (no "cleared" notification).

        Returns
        -------
        bool
            True if the alarm was active.
        """
        state = self._require(variable_id)
        key = AlarmKey(condition_index=condition_index, direction=direction, alarm_type=alarm_type)
        with state.lock:
            removed = state.alarms.remove(key)
            if removed is not None:
                state.hysteresis_active.discard(condition_index)

        if removed is not None:
            logger.info(
                "alarm_acknowledged",
                variable_id=variable_id,
                condition_index=condition_index,
                alarm_type=alarm_type.value,
            )
        return removed is not None

    def acknowledge_all_alarms(self, variable_id: str) -> int:
        """
        Silently remove every active alarm of a variable.

        Returns
        -------
        int
            Number of alarms acknowledged.
        """
        state = self._require(variable_id)
        with state.lock:
            keys = state.alarms.keys()
            state.alarms.clear()
            state.hysteresis_active.clear()

        if keys:
            logger.info("alarm_acknowledged", variable_id=variable_id, count=len(keys))
        return len(keys)

    def get_active_alarms(self, variable_id: Optional[str] = None) -> List[ActiveAlarm]:
        """
        Snapshot of active alarms, for all variables or for one.

        Unknown variable ids yield an empty list.
        """
        if variable_id is not None:
            state = self._store.get(variable_id)
            states = [state] if state is not None else []
        else:
            states = self._store.all()

        alarms: List[ActiveAlarm] = []
        for state in states:
            with state.lock:
                alarms.extend(state.alarms.active())
        return alarms

    # --- Query API ---
    def get_registered_variables(self) -> List[VariableRegistration]:
        registrations = []
        for state in self._store.all():
            with state.lock:
                registrations.append(state.registration)
        return registrations

    def get_current_value(
        self,
        variable_id: str,
        expected_type: Optional[type] = None,
        default: Any = None,
    ) -> Any:
        """
        Last stored value of a variable.

        Parameters
        ----------
        variable_id
            Variable id.
        expected_type
            If given, ``default`` is returned when the stored value is not an
            instance of this type.
        default
            Returned for unknown ids or mismatched types.
        """
        state = self._store.get(variable_id)
        if state is None:
            return default
        with state.lock:
            value = state.current_value
        if expected_type is not None and not isinstance(value, expected_type):
            return default
        return value

    def time_remaining(self, variable_id: str, condition_index: int) -> Optional[timedelta]:
        """
        Remaining delay of a delayed condition.

        Returns
        -------
        timedelta or None
            None if the condition is not delayed, not currently met, or has
            already expired.
        """
        state = self._require(variable_id)
        with state.lock:
            timer = state.timers.get(condition_index)
            return timer.time_remaining() if timer is not None else None

    # --- Internals ---
    def _require(self, variable_id: str) -> VariableState:
        state = self._store.get(variable_id)
        if state is None:
            raise UnregisteredVariableError(variable_id)
        return state

    def _apply_change(self, variable_id: str, new_value: Any, old_override: Any, use_override: bool) -> List[AlarmEvent]:
        while True:
            state = self._require(variable_id)
            if new_value is None:
                raise NullValueError(f"New value of {variable_id!r} must not be None")

            with state.lock:
                if state.disposed:
                    # Replaced or unregistered concurrently; resolve the id again.
                    continue
                self._check_value(state.registration, new_value)
                old_value = old_override if use_override else state.current_value
                # Run every test before mutating anything, so a raising test
                # leaves the value, the alarms and the hysteresis flags as they were.
                results = [self._test(state, cond, old_value, new_value) for cond in state.conditions]
                state.store_value(new_value)
                events = self._evaluate(state, results, old_value, new_value)
            break

        self._publish(events)
        return events

    @staticmethod
    def _check_value(registration: VariableRegistration, value: Any) -> None:
        kind = registration.value_kind
        if kind is ValueKind.STRUCTURED:
            return
        if kind_of(value) is not kind:
            raise TypeMismatchError(
                f"Value for {registration.id!r} must be of kind {kind.value}, got {type(value).__name__}"
            )
        if kind is ValueKind.ENUM and not isinstance(value, registration.value_type):
            raise TypeMismatchError(
                f"Value for {registration.id!r} must be a {registration.value_type.__name__} member"
            )

    @staticmethod
    def _test(state: VariableState, cond: CompiledCondition, old_value: Any, new_value: Any) -> bool:
        """
        Raw result of one condition for this update.

        For an active hysteresis condition this is the clear test, otherwise
        the condition's own test.
        """
        if cond.kind is ConditionKind.HYSTERESIS and cond.index in state.hysteresis_active:
            return cond.clear_test is not None and bool(cond.clear_test(new_value))
        return cond.evaluate(old_value, new_value)

    def _evaluate(
        self,
        state: VariableState,
        results: Sequence[bool],
        old_value: Any,
        new_value: Any,
    ) -> List[AlarmEvent]:
        """
        Apply precomputed condition results in registration order.

        ``results[i]`` is :meth:`_test` for ``state.conditions[i]``. Must be
        called with ``state.lock`` held.
        """
        now = self._timer_provider.now()
        events: List[AlarmEvent] = []

        for cond, met in zip(state.conditions, results):
            event: Optional[AlarmEvent] = None

            if cond.kind is ConditionKind.HYSTERESIS:
                if cond.index in state.hysteresis_active:
                    # Only the clear bound matters while active.
                    if met:
                        state.hysteresis_active.discard(cond.index)
                        event = self._clear(state, cond, new_value, old_value, now)
                elif met:
                    state.hysteresis_active.add(cond.index)
                    event = self._trigger(state, cond, new_value, old_value, now)

            elif cond.kind is ConditionKind.DELAYED:
                timer = state.timers[cond.index]
                was_met = timer.condition_met
                timer.on_condition_changed(met)
                if met:
                    if was_met:
                        continue
                    logger.debug(
                        "delayed_condition_armed",
                        variable_id=state.variable_id,
                        condition_index=cond.index,
                    )
                else:
                    event = self._clear(state, cond, new_value, old_value, now)

            elif met:
                event = self._trigger(state, cond, new_value, old_value, now)
            else:
                event = self._clear(state, cond, new_value, old_value, now)

            if event is not None:
                events.append(event)

        return events

    def _on_delay_expired(self, state: VariableState, cond: CompiledCondition) -> None:
        with state.lock:
            if state.disposed:
                return
            timer = state.timers.get(cond.index)
            if timer is None or not (timer.condition_met and timer.delay_expired):
                return
            event = self._trigger(state, cond, state.current_value, None, self._timer_provider.now())

        if event is not None:
            self._publish([event])

    def _trigger(
        self,
        state: VariableState,
        cond: CompiledCondition,
        current_value: Any,
        previous_value: Any,
        now: datetime,
    ) -> Optional[AlarmEvent]:
        alarm = ActiveAlarm(
            variable_id=state.variable_id,
            alarm_type=cond.alarm_type,
            direction=cond.direction,
            message=cond.message,
            timestamp=now,
            current_value=current_value,
            previous_value=previous_value,
            threshold_value=cond.threshold_value,
            condition_index=cond.index,
        )
        if not state.alarms.add(cond.key, alarm):
            return None

        logger.info(
            "alarm_triggered",
            variable_id=state.variable_id,
            condition_index=cond.index,
            alarm_type=cond.alarm_type.value,
            direction=cond.direction.value,
        )
        return self._event(state, cond, current_value, previous_value, now, is_active=True)

    def _clear(
        self,
        state: VariableState,
        cond: CompiledCondition,
        current_value: Any,
        previous_value: Any,
        now: datetime,
    ) -> Optional[AlarmEvent]:
        if state.alarms.remove(cond.key) is None:
            return None

        logger.info(
            "alarm_cleared",
            variable_id=state.variable_id,
            condition_index=cond.index,
            alarm_type=cond.alarm_type.value,
            direction=cond.direction.value,
        )
        return self._event(state, cond, current_value, previous_value, now, is_active=False)

    @staticmethod
    def _event(
        state: VariableState,
        cond: CompiledCondition,
        current_value: Any,
        previous_value: Any,
        now: datetime,
        is_active: bool,
    ) -> AlarmEvent:
        return AlarmEvent(
            variable_id=state.variable_id,
            variable_name=state.registration.name,
            alarm_type=cond.alarm_type,
            direction=cond.direction,
            current_value=current_value,
            previous_value=previous_value,
            threshold_value=cond.threshold_value,
            message=cond.message,
            timestamp=now,
            is_active=is_active,
            condition_index=cond.index,
        )

    def _publish(self, events: Sequence[AlarmEvent]) -> None:
        for event in events:
            channel = self.alarm_triggered if event.is_active else self.alarm_cleared
            channel.publish(event)
