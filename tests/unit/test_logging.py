from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tether.config import ConfigError, LoggingConfig
from tether.logging import ConsoleFormatter, configure_logging, level_from_string


def _record(level: int, message: str) -> logging.LogRecord:
    return logging.LogRecord("tether.manager", level, __file__, 1, message, None, None)


def test_console_formatter_prefixes_level_symbol() -> None:
    formatter = ConsoleFormatter(use_color=False)

    assert formatter.format(_record(logging.INFO, "ready")) == "I tether.manager: ready"
    assert formatter.format(_record(logging.WARNING, "stalled")) == "! tether.manager: stalled"


def test_console_formatter_colours_when_enabled() -> None:
    formatter = ConsoleFormatter(use_color=True)

    formatted = formatter.format(_record(logging.ERROR, "broken"))

    assert formatted.startswith("\x1b[31mX\x1b[0m ")
    assert formatted.endswith("broken")


def test_configure_logging_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "tether.log"

    configure_logging(LoggingConfig(level="debug", file=log_file))
    logging.getLogger("tether.test").debug("hello %s", "file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.DEBUG
    assert "DEBUG tether.test: hello file" in log_file.read_text(encoding="utf-8")


def test_level_override_wins() -> None:
    configure_logging(LoggingConfig(level="debug"), level="error")

    assert logging.getLogger().level == logging.ERROR


@pytest.mark.parametrize("level, expected", [("warn", logging.WARNING), (" Info ", logging.INFO)])
def test_level_from_string(level: str, expected: int) -> None:
    assert level_from_string(level) == expected


def test_unknown_level_is_config_error() -> None:
    with pytest.raises(ConfigError, match="Unknown log level"):
        level_from_string("chatty")
