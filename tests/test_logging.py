from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from switchboard.telemetry.logging import LoggingSetup


def test_file_logging_writes_plain_text(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "switchboard.log"

    logger = LoggingSetup.to_file(log_file).with_level("debug").init()
    logging.getLogger("switchboard.bus").debug("backend_subscribed")
    for handler in logger.handlers:
        handler.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "DEBUG" in text
    assert "switchboard.bus" in text
    assert "backend_subscribed" in text


def test_init_replaces_previous_handlers(tmp_path: Path) -> None:
    logger = LoggingSetup.stdout().with_file(tmp_path / "a.log").init()
    assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1
    assert len(logger.handlers) == 2

    logger = LoggingSetup.stdout().init()
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], RichHandler)


def test_builder_is_immutable() -> None:
    base = LoggingSetup.empty()
    configured = base.with_stdout().with_level("warning")

    assert base.to_stdout is False
    assert configured.to_stdout is True
    assert configured.level == "WARNING"
