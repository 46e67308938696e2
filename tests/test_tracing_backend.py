from __future__ import annotations

import logging

import pytest

from switchboard.backends.tracing import (
    CounterRecord,
    LoggingTraceSink,
    MemoryTraceSink,
    SpanRecord,
    TracingBackend,
)
from switchboard.bus import EventBus
from switchboard.measure import Timer
from switchboard.models import Event, Severity


def test_duration_events_become_spans() -> None:
    sink = MemoryTraceSink()
    backend = TracingBackend(sink, min_severity="trace")

    backend.deliver(
        Event(severity=Severity.DEBUG, source="measure", message="x", fields={"label": "reindex", "duration_ms": 12})
    )

    [span] = sink.spans()
    assert isinstance(span, SpanRecord)
    assert span.name == "reindex"
    assert span.duration_ms == 12.0
    assert span.source == "measure"
    assert span.severity == Severity.DEBUG


def test_other_events_increment_counters_per_source_and_severity() -> None:
    sink = MemoryTraceSink()
    backend = TracingBackend(sink, min_severity="trace")

    for _ in range(3):
        backend.deliver(Event(severity=Severity.WARN, source="net", message="retry"))
    backend.deliver(Event(severity=Severity.INFO, source="net", message="ok", fields={"duration_ms": True}))

    assert backend.snapshot() == {"net.warn": 3, "net.info": 1}
    assert [record.value for record in sink.counters()] == [1, 2, 3, 1]
    assert all(isinstance(record, CounterRecord) for record in sink.records)


def test_memory_sink_is_bounded() -> None:
    sink = MemoryTraceSink(max_records=2)
    backend = TracingBackend(sink, min_severity="trace")

    for idx in range(5):
        backend.deliver(Event(severity=Severity.INFO, source="app", message=str(idx)))

    assert [record.value for record in sink.counters()] == [4, 5]


def test_sink_failure_is_not_retried() -> None:
    class ExplodingSink:
        def __init__(self) -> None:
            self.calls = 0

        def record(self, record) -> None:
            self.calls += 1
            raise RuntimeError("profiler gone")

    sink = ExplodingSink()
    bus = EventBus()
    handle = bus.subscribe(TracingBackend(sink, min_severity="info"))
    bus.start()
    bus.emit("info", "app", "tick")
    bus.shutdown(timeout=1)

    assert sink.calls == 1
    assert handle.failed == 1


def test_timer_spans_flow_through_bus() -> None:
    sink = MemoryTraceSink()
    bus = EventBus()
    bus.subscribe(TracingBackend(sink, min_severity="debug"))
    bus.start()

    with Timer(bus, "load-config"):
        pass
    bus.shutdown(timeout=1)

    [span] = sink.spans()
    assert span.name == "load-config"
    assert span.duration_ms >= 0


def test_logging_sink_writes_structured_records(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingTraceSink()
    backend = TracingBackend(sink, min_severity="trace")

    with caplog.at_level(logging.INFO, logger="switchboard.trace"):
        backend.deliver(Event(severity=Severity.ERROR, source="db", message="slow", fields={"duration_ms": 250.5}))
        backend.deliver(Event(severity=Severity.ERROR, source="db", message="down"))

    span_record, counter_record = caplog.records
    assert span_record.getMessage() == "span"
    assert span_record.duration_ms == 250.5
    assert counter_record.getMessage() == "counter"
    assert counter_record.counter == "db.error"
    assert counter_record.value == 1
