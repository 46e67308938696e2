from __future__ import annotations

from collections.abc import Iterator

import pytest

from switchboard.telemetry.logging import LoggingSetup


@pytest.fixture(autouse=True)
def _reset_switchboard_logging() -> Iterator[None]:
    yield
    LoggingSetup.empty().with_level("NOTSET").init()
