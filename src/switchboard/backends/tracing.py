"""Profiler/tracing bridge turning events into span and counter records.

Events carrying a numeric ``duration_ms`` field become spans; all others bump
a per ``source.severity`` counter. Lost samples are acceptable, so delivery is
never retried.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Union

from switchboard.backends.base import FilteredBackend
from switchboard.models import Event, Severity


@dataclass(frozen=True, slots=True)
class SpanRecord:
    name: str
    source: str
    severity: Severity
    duration_ms: float
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class CounterRecord:
    name: str
    source: str
    severity: Severity
    value: int
    timestamp: datetime


TraceRecord = Union[SpanRecord, CounterRecord]


class TraceSink(Protocol):
    """Export target for span and counter records."""

    def record(self, record: TraceRecord) -> None:
        """Export one record; must not retry."""


class LoggingTraceSink:
    """Writes records to the ``switchboard.trace`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("switchboard.trace")

    def record(self, record: TraceRecord) -> None:
        if isinstance(record, SpanRecord):
            self._logger.info(
                "span",
                extra={
                    "span": record.name,
                    "event_source": record.source,
                    "severity": record.severity.name,
                    "duration_ms": record.duration_ms,
                },
            )
        else:
            self._logger.info(
                "counter",
                extra={
                    "counter": record.name,
                    "event_source": record.source,
                    "severity": record.severity.name,
                    "value": record.value,
                },
            )


class MemoryTraceSink:
    """Keeps the most recent records in memory for inspection."""

    def __init__(self, max_records: int = 10_000) -> None:
        self._records: deque[TraceRecord] = deque(maxlen=max_records)

    def record(self, record: TraceRecord) -> None:
        self._records.append(record)

    @property
    def records(self) -> list[TraceRecord]:
        return list(self._records)

    def spans(self) -> list[SpanRecord]:
        return [rec for rec in self._records if isinstance(rec, SpanRecord)]

    def counters(self) -> list[CounterRecord]:
        return [rec for rec in self._records if isinstance(rec, CounterRecord)]


class TracingBackend(FilteredBackend):
    name = "tracing"

    def __init__(
        self,
        sink: TraceSink | None = None,
        *,
        min_severity: Severity | str,
        name: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(min_severity=min_severity, name=name, logger=logger)
        self._sink = sink or LoggingTraceSink()
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def sink(self) -> TraceSink:
        return self._sink

    def deliver(self, event: Event) -> None:
        duration = event.fields.get("duration_ms")
        if isinstance(duration, (int, float)) and not isinstance(duration, bool):
            label = event.fields.get("label")
            self._sink.record(
                SpanRecord(
                    name=str(label) if label else event.message,
                    source=event.source,
                    severity=event.severity,
                    duration_ms=float(duration),
                    timestamp=event.timestamp,
                )
            )
            return

        key = f"{event.source}.{event.severity.name.lower()}"
        with self._lock:
            value = self._counters.get(key, 0) + 1
            self._counters[key] = value
        self._sink.record(
            CounterRecord(name=key, source=event.source, severity=event.severity, value=value, timestamp=event.timestamp)
        )

    def snapshot(self) -> dict[str, int]:
        """Current counter values keyed by ``source.severity``."""
        with self._lock:
            return dict(self._counters)
