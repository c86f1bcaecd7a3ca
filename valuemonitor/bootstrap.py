from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from valuemonitor.core.alarm import common_conditions as cc
from valuemonitor.core.alarm.conditions import Condition, HysteresisCondition, ThresholdCondition
from valuemonitor.core.config.yaml_config import ConditionConfig, MonitorConfig, load_monitor_config
from valuemonitor.core.logging import setup_logging
from valuemonitor.core.monitor import ValueMonitor
from valuemonitor.core.timing.timer_provider import TimerProvider
from valuemonitor.domain.errors import InvalidConfigurationError
from valuemonitor.domain.models import AlarmDirection, AlarmType


@dataclass(frozen=True)
class MonitorWiring:
    """Loaded configuration and the monitor built from it."""
    config: MonitorConfig
    monitor: ValueMonitor


def _alarm_type(params: Dict[str, Any]) -> AlarmType:
    raw = params.get("alarm_type", AlarmType.WARNING.value)
    try:
        return AlarmType(str(raw).upper())
    except ValueError as e:
        raise InvalidConfigurationError(f"unknown alarm_type {raw!r}") from e


def _bound_direction(params: Dict[str, Any]) -> AlarmDirection:
    raw = params.get("direction", AlarmDirection.UPPER_BOUND.value)
    try:
        direction = AlarmDirection(str(raw).upper())
    except ValueError as e:
        raise InvalidConfigurationError(f"unknown direction {raw!r}") from e
    if direction is AlarmDirection.CUSTOM:
        raise InvalidConfigurationError("threshold conditions need 'upper_bound' or 'lower_bound'")
    return direction


def build_condition(cfg: ConditionConfig) -> Condition:
    """
    Convert one condition entry into a condition object.

    Parameters
    ----------
    cfg
        Parsed condition entry.

    Returns
    -------
    Condition
        One of the five condition kinds, built through the common factories
        where one exists.

    Raises
    ------
    InvalidConfigurationError
        If a required parameter is missing or an enum value is unknown.
    """
    p = cfg.params
    alarm_type = _alarm_type(p)
    message = str(p.get("message", ""))

    try:
        if cfg.kind == "threshold":
            return ThresholdCondition(alarm_type, _bound_direction(p), p["threshold"], message)
        if cfg.kind == "hysteresis":
            return HysteresisCondition(alarm_type, _bound_direction(p), p["trigger"], p["clear"], message)
        if cfg.kind == "delayed":
            return cc.with_delay(build_condition(p["condition"]), timedelta(seconds=p["delay_s"]))
        if cfg.kind == "on_true":
            return cc.on_true(alarm_type, message)
        if cfg.kind == "on_false":
            return cc.on_false(alarm_type, message)
        if cfg.kind == "boolean_change":
            return cc.on_boolean_change(alarm_type, bool(p["from"]), bool(p["to"]), message)
        if cfg.kind == "string_equals":
            return cc.on_string_equals(alarm_type, str(p["value"]), message)
        if cfg.kind == "string_contains":
            return cc.on_string_contains(alarm_type, str(p["value"]), message)
        if cfg.kind == "string_empty":
            return cc.on_string_empty(alarm_type, message)
        if cfg.kind == "value_jump":
            return cc.on_value_jump(alarm_type, p["threshold"], message)
        if cfg.kind == "value_increase":
            return cc.on_value_increase(alarm_type, message)
        if cfg.kind == "value_decrease":
            return cc.on_value_decrease(alarm_type, message)
    except KeyError as e:
        raise InvalidConfigurationError(f"{cfg.kind} condition is missing {e.args[0]!r}") from e

    raise InvalidConfigurationError(f"unknown condition kind {cfg.kind!r}")


def build_monitor(cfg: MonitorConfig, timer_provider: Optional[TimerProvider] = None) -> ValueMonitor:
    """Create a monitor and register every configured variable."""
    monitor = ValueMonitor(timer_provider=timer_provider, settings=cfg.monitor)

    for var in cfg.variables:
        conditions: List[Condition] = [build_condition(c) for c in var.conditions]
        monitor.register_variable(
            var.id,
            var.name,
            var.initial_value,
            conditions,
            value_kind=var.value_kind,
        )

    return monitor


def build_monitor_system(
    config_path: Optional[str] = None,
    timer_provider: Optional[TimerProvider] = None,
) -> MonitorWiring:
    cfg = load_monitor_config(config_path)

    # --- LOGGING ---
    setup_logging(config=cfg.logging)

    # --- MONITOR ---
    monitor = build_monitor(cfg, timer_provider=timer_provider)

    return MonitorWiring(config=cfg, monitor=monitor)
