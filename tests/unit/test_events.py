from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from valuemonitor.domain.events import AlarmEvent, ValueChangedEvent
from valuemonitor.domain.models import AlarmDirection, AlarmType


def test_value_changed_event_defaults_to_aware_utc_timestamp() -> None:
    ev = ValueChangedEvent(variable_id="t1", old_value=1.0, new_value=2.0)
    assert ev.timestamp.tzinfo is not None
    assert ev.timestamp.utcoffset().total_seconds() == 0


def test_alarm_event_is_frozen() -> None:
    ev = AlarmEvent(
        variable_id="t1",
        variable_name="Temp",
        alarm_type=AlarmType.WARNING,
        direction=AlarmDirection.UPPER_BOUND,
        current_value=90.0,
        previous_value=20.0,
        threshold_value=80.0,
        message="hot",
        timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
        is_active=True,
    )
    assert ev.condition_index == 0
    with pytest.raises(FrozenInstanceError):
        ev.is_active = False  # type: ignore[misc]
