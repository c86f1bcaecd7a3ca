from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from valuemonitor.domain.errors import InvalidConfigurationError
from valuemonitor.domain.models import ValueKind

CONFIG_ENV_VAR = "VALUEMONITOR_CONFIG"
DEFAULT_CONFIG_NAME = "valuemonitor.yaml"

CONDITION_KINDS = frozenset(
    {
        "threshold",
        "hysteresis",
        "delayed",
        "on_true",
        "on_false",
        "boolean_change",
        "string_equals",
        "string_contains",
        "string_empty",
        "value_jump",
        "value_increase",
        "value_decrease",
    }
)


@dataclass(frozen=True)
class LoggingConfig:
    """structlog output settings."""
    level: str = "INFO"
    format: str = "console"


@dataclass(frozen=True)
class MonitorSettings:
    """
    Monitor behaviour settings.

    isolate_subscriber_errors
        If True, subscriber exceptions are logged and dispatch continues.
        If False, the first exception propagates to the notifying caller.
    """
    isolate_subscriber_errors: bool = False


@dataclass(frozen=True)
class ConditionConfig:
    """
    One declarative condition entry.

    ``params`` holds every key of the YAML entry except ``kind``. For
    ``delayed`` entries ``params["condition"]`` is itself a ConditionConfig.
    """
    kind: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VariableConfig:
    """A variable to register at startup."""
    id: str
    name: str
    initial_value: Any
    value_kind: Optional[ValueKind] = None
    conditions: List[ConditionConfig] = field(default_factory=list)


@dataclass(frozen=True)
class MonitorConfig:
    """
    Root monitor configuration loaded from YAML.

    Holds the logging setup, the monitor settings and the variables that
    should be registered when the monitor is built from configuration.
    """
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitor: MonitorSettings = field(default_factory=MonitorSettings)
    variables: List[VariableConfig] = field(default_factory=list)


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidConfigurationError(f"{path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"{path} must contain a YAML mapping at the root")
    return data


def _resolve_default_config_path() -> Path:
    """
    Resolve valuemonitor.yaml location.

    Priority:
    1) VALUEMONITOR_CONFIG env var if provided
    2) ./valuemonitor.yaml in current working directory
    """
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser().resolve()
    return Path(DEFAULT_CONFIG_NAME).resolve()


def _parse_condition(raw: Any, where: str) -> ConditionConfig:
    if not isinstance(raw, dict):
        raise InvalidConfigurationError(f"{where}: condition must be a mapping")

    params = dict(raw)
    kind = str(params.pop("kind", "")).strip().lower()
    if kind not in CONDITION_KINDS:
        raise InvalidConfigurationError(f"{where}: unknown condition kind {kind!r}")

    if kind == "delayed":
        if "delay_s" not in params or "condition" not in params:
            raise InvalidConfigurationError(f"{where}: delayed condition needs 'delay_s' and 'condition'")
        inner = _parse_condition(params["condition"], f"{where}.condition")
        if inner.kind in ("delayed", "hysteresis"):
            raise InvalidConfigurationError(f"{where}: delayed condition cannot wrap {inner.kind!r}")
        params["condition"] = inner
        params["delay_s"] = float(params["delay_s"])

    return ConditionConfig(kind=kind, params=params)


def _parse_variable(raw: Any, index: int) -> VariableConfig:
    where = f"variables[{index}]"
    if not isinstance(raw, dict):
        raise InvalidConfigurationError(f"{where}: variable must be a mapping")

    try:
        variable_id = str(raw["id"])
        initial_value = raw["initial_value"]
    except KeyError as e:
        raise InvalidConfigurationError(f"{where}: missing required key {e.args[0]!r}") from e
    if initial_value is None:
        raise InvalidConfigurationError(f"{where}: initial_value must not be null")

    value_kind = None
    if raw.get("value_kind") is not None:
        try:
            value_kind = ValueKind(str(raw["value_kind"]).upper())
        except ValueError as e:
            raise InvalidConfigurationError(f"{where}: unknown value_kind {raw['value_kind']!r}") from e

    conditions = [
        _parse_condition(c, f"{where}.conditions[{i}]")
        for i, c in enumerate(raw.get("conditions") or [])
    ]

    return VariableConfig(
        id=variable_id,
        name=str(raw.get("name", variable_id)),
        initial_value=initial_value,
        value_kind=value_kind,
        conditions=conditions,
    )


def load_monitor_config(path: Optional[str] = None) -> MonitorConfig:
    """
    Load monitor configuration from YAML and convert into typed config objects.

    Parameters
    ----------
    path
        Explicit path to valuemonitor.yaml. If None, uses default resolution.

    Returns
    -------
    MonitorConfig
        Parsed and validated configuration.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    InvalidConfigurationError
        If the root is not a mapping or an entry is missing/invalid.
    """
    cfg_path = Path(path).expanduser().resolve() if path else _resolve_default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    raw = _read_yaml(cfg_path)

    # ---- logging ----
    lg = raw.get("logging") or {}
    logging_cfg = LoggingConfig(
        level=str(lg.get("level", "INFO")).upper(),
        format=str(lg.get("format", "console")).lower(),
    )
    if logging_cfg.format not in ("console", "json"):
        raise InvalidConfigurationError(f"logging.format must be 'console' or 'json', got {logging_cfg.format!r}")

    # ---- monitor ----
    m = raw.get("monitor") or {}
    settings = MonitorSettings(
        isolate_subscriber_errors=bool(m.get("isolate_subscriber_errors", False)),
    )

    # ---- variables ----
    variables_raw = raw.get("variables") or []
    if not isinstance(variables_raw, list):
        raise InvalidConfigurationError("variables must be a list")
    variables = [_parse_variable(item, i) for i, item in enumerate(variables_raw)]

    return MonitorConfig(logging=logging_cfg, monitor=settings, variables=variables)
