from __future__ import annotations

import logging

import structlog

from valuemonitor.core.config.yaml_config import LoggingConfig
from valuemonitor.core.logging import setup_logging


def test_setup_logging_uses_config_level() -> None:
    setup_logging(config=LoggingConfig(level="WARNING", format="json"))
    root = logging.getLogger()

    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)


def test_setup_logging_overrides_win() -> None:
    setup_logging(level="debug", fmt="console", config=LoggingConfig(level="ERROR"))
    assert logging.getLogger().level == logging.DEBUG


def test_setup_logging_unknown_level_falls_back_to_info() -> None:
    setup_logging(level="chatty")
    assert logging.getLogger().level == logging.INFO
