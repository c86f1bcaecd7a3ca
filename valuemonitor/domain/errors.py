"""Monitor exceptions."""

from __future__ import annotations


class MonitorError(Exception):
    """Base exception for value monitor errors."""


class UnregisteredVariableError(MonitorError, KeyError):
    """An operation referenced a variable id that is not registered."""

    def __init__(self, variable_id: str) -> None:
        super().__init__(variable_id)
        self.variable_id = variable_id

    def __str__(self) -> str:
        return f"Variable {self.variable_id!r} is not registered"


class NullValueError(MonitorError, ValueError):
    """A required value (id, initial value, notified value) was None."""


class TypeMismatchError(MonitorError, TypeError):
    """A value or threshold does not match the variable's declared value kind."""


class InvalidConfigurationError(MonitorError, ValueError):
    """A condition or configuration entry violates its invariants."""
