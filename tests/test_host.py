from __future__ import annotations

import time

from switchboard.backends.tracing import MemoryTraceSink, TracingBackend
from switchboard.config import Settings
from switchboard.host import Switchboard, build_tracing_backend
from switchboard.models import BackpressurePolicy, Event, Severity


class Recorder:
    def __init__(self, name: str = "recorder") -> None:
        self.name = name
        self.received: list[Event] = []

    def accept(self, event: Event) -> bool:
        return True

    def deliver(self, event: Event) -> None:
        self.received.append(event)


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_host_without_backends_runs_commands_and_publishes() -> None:
    with Switchboard(_settings(), backends=[]) as host:
        host.emit("info", "nobody listening")
        result = host.execute("help")

    assert result is not None
    assert result.message == "commands: emit, help, status"
    assert host.registry.frozen


def test_host_applies_per_backend_configuration() -> None:
    config = _settings(tracing={"enabled": True, "min_severity": "trace", "queue_capacity": 8, "backpressure": "block"})
    backend = TracingBackend(MemoryTraceSink(), min_severity="trace")

    host = Switchboard(config, backends=[backend])
    [handle] = host.bus.handles

    assert handle.policy == BackpressurePolicy.BLOCK
    assert handle.queue.capacity == 8
    host.shutdown()


def test_host_builds_enabled_backends_from_factories() -> None:
    config = _settings(
        tracing={"enabled": True, "min_severity": "debug", "sink": "memory"},
        speech={"enabled": True, "min_severity": "warn"},
    )
    built: list[str] = []

    def fake_speech(settings: Settings) -> Recorder:
        built.append("speech")
        return Recorder("speech")

    host = Switchboard(config, factories={"speech": fake_speech, "tracing": build_tracing_backend})

    assert built == ["speech"]
    assert [handle.name for handle in host.bus.handles] == ["speech", "tracing"]
    host.shutdown()


def test_emit_command_routes_through_bus() -> None:
    recorder = Recorder()
    host = Switchboard(_settings(), backends=[recorder])
    host.start()

    result = host.execute('emit "backup finished" --severity warn --source cron')
    host.shutdown()

    assert result is not None and result.ok
    [event] = recorder.received
    assert event.severity == Severity.WARN
    assert event.source == "cron"
    assert event.message == "backup finished"


def test_help_for_one_command_and_unknown_command() -> None:
    host = Switchboard(_settings(), backends=[])

    usage = host.execute("help emit")
    missing = host.execute("help nope")

    assert usage is not None and usage.message.startswith("emit <message:str> [--severity <enum>] [--source <str>]")
    assert missing is not None and missing.render() == "ERROR: unknown command: nope"


def test_status_reports_delivery_counters() -> None:
    recorder = Recorder()
    host = Switchboard(_settings(), backends=[recorder])
    host.start()
    host.emit("error", "one")
    deadline = time.monotonic() + 2
    while host.bus.handles[0].delivered < 1 and time.monotonic() < deadline:
        time.sleep(0.005)

    result = host.execute("status")
    status = host.status()
    host.shutdown()

    assert result is not None and result.message == "recorder: delivered=1 failed=0 dropped=0 queued=0"
    assert status["running"] is True
    assert status["backends"][0]["delivered"] == 1


def test_timer_events_reach_backends() -> None:
    sink = MemoryTraceSink()
    host = Switchboard(_settings(), backends=[TracingBackend(sink, min_severity="debug")])
    host.start()

    with host.timer("warmup"):
        pass
    host.shutdown()

    assert [span.name for span in sink.spans()] == ["warmup"]


def test_emit_takes_fields_as_a_mapping() -> None:
    recorder = Recorder()
    host = Switchboard(_settings(), backends=[recorder])
    host.start()

    host.emit("warn", "disk almost full", {"source": "sda1", "free_mb": 120}, source="storage")
    host.shutdown()

    [event] = recorder.received
    assert event.source == "storage"
    assert dict(event.fields) == {"source": "sda1", "free_mb": 120}
