"""Log output setup: console (rich) and/or plain-text file handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from rich.logging import RichHandler

ROOT_LOGGER = "switchboard"
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(threadName)s %(message)s"

_installed: list[logging.Handler] = []


@dataclass(frozen=True)
class LoggingSetup:
    """Builder describing where switchboard logs go.

    ``LoggingSetup.stdout().with_file("switchboard.log").init()``
    """

    to_stdout: bool = False
    file: Path | None = None
    level: str = "INFO"

    @classmethod
    def empty(cls) -> LoggingSetup:
        return cls()

    @classmethod
    def stdout(cls) -> LoggingSetup:
        return cls().with_stdout()

    @classmethod
    def to_file(cls, path: str | Path) -> LoggingSetup:
        return cls().with_file(path)

    def with_stdout(self) -> LoggingSetup:
        return replace(self, to_stdout=True)

    def with_file(self, path: str | Path) -> LoggingSetup:
        return replace(self, file=Path(path))

    def with_level(self, level: str) -> LoggingSetup:
        return replace(self, level=level.upper())

    def init(self) -> logging.Logger:
        """Install handlers on the ``switchboard`` logger, replacing earlier ones."""
        logger = logging.getLogger(ROOT_LOGGER)
        for handler in _installed:
            logger.removeHandler(handler)
            handler.close()
        _installed.clear()

        if self.to_stdout:
            _installed.append(RichHandler(rich_tracebacks=True, show_path=False))
        if self.file is not None:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.file, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            _installed.append(file_handler)

        for handler in _installed:
            logger.addHandler(handler)
        logger.setLevel(self.level)
        return logger
