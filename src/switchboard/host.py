"""Composition root: builds the bus, the enabled backends and the command registry."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from switchboard.backends.base import Backend
from switchboard.bus import EventBus, ShutdownReport
from switchboard.commands.registry import CommandRegistry, Parameter, ParamType
from switchboard.config import Settings
from switchboard.errors import CommandFailed
from switchboard.measure import Timer
from switchboard.models import BackpressurePolicy, CommandResult, Event, Scalar, Severity

HOST_SOURCE = "host"
SEVERITY_CHOICES = tuple(member.name.lower() for member in Severity)

BackendFactory = Callable[[Settings], Backend]


def build_chat_backend(config: Settings) -> Backend:
    from switchboard.backends.chat import ChatAlertBackend, TelegramTransport, WebhookTransport

    chat = config.chat
    transport: Any
    if chat.webhook_url:
        transport = WebhookTransport(chat.webhook_url)
    else:
        transport = TelegramTransport(chat.token or "", chat.chat_id or "")
    return ChatAlertBackend(
        transport,
        min_severity=chat.min_severity,  # type: ignore[arg-type]
        max_attempts=chat.max_attempts,
        base_delay_seconds=chat.base_delay_seconds,
        max_delay_seconds=chat.max_delay_seconds,
    )


def build_speech_backend(config: Settings) -> Backend:
    from switchboard.backends.speech import SpeechBackend
    from switchboard.speech.tts_pyttsx3 import Pyttsx3Announcer

    speech = config.speech
    announcer = Pyttsx3Announcer(voice_id=speech.voice_id, rate=speech.rate, volume=speech.volume)
    return SpeechBackend(
        announcer,
        announcer,
        min_severity=speech.min_severity,  # type: ignore[arg-type]
        template=speech.template,
        max_chars=speech.max_chars,
    )


def build_tracing_backend(config: Settings) -> Backend:
    from switchboard.backends.tracing import LoggingTraceSink, MemoryTraceSink, TracingBackend

    tracing = config.tracing
    sink = MemoryTraceSink() if tracing.sink == "memory" else LoggingTraceSink()
    return TracingBackend(sink, min_severity=tracing.min_severity)  # type: ignore[arg-type]


BACKEND_FACTORIES: dict[str, BackendFactory] = {
    "chat": build_chat_backend,
    "speech": build_speech_backend,
    "tracing": build_tracing_backend,
}


class Switchboard:
    """Host-facing facade owning one bus and one command registry.

    Which backends exist is decided here, once, from settings; the bus itself
    only ever sees objects satisfying the backend contract.
    """

    def __init__(
        self,
        config: Settings,
        *,
        backends: list[Backend] | None = None,
        factories: dict[str, BackendFactory] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self._logger = logger or logging.getLogger("switchboard.host")
        self.bus = EventBus(drain_timeout=config.drain_timeout_seconds, logger=logging.getLogger("switchboard.bus"))
        self.registry = CommandRegistry()
        self._register_builtin_commands()

        for backend in backends if backends is not None else self._build_backends(factories or BACKEND_FACTORIES):
            backend_config = getattr(config, backend.name, None)
            self.bus.subscribe(
                backend,
                policy=getattr(backend_config, "backpressure", BackpressurePolicy.DROP_OLDEST),
                capacity=getattr(backend_config, "queue_capacity", None),
            )

    def _build_backends(self, factories: dict[str, BackendFactory]) -> list[Backend]:
        built: list[Backend] = []
        for name in self.config.enabled_backends():
            factory = factories.get(name)
            if factory is None:
                self._logger.warning("backend_factory_missing", extra={"backend": name})
                continue
            built.append(factory(self.config))
        return built

    def start(self) -> None:
        """End the startup phase and start backend workers."""
        self.registry.freeze()
        self.bus.start()
        self._logger.info("switchboard_started", extra={"backends": [h.name for h in self.bus.handles]})

    def shutdown(self, timeout: float | None = None) -> list[ShutdownReport]:
        reports = self.bus.shutdown(timeout)
        self._logger.info("switchboard_stopped")
        return reports

    def publish(self, event: Event) -> None:
        self.bus.publish(event)

    def emit(
        self,
        severity: Severity | str,
        message: str,
        /,
        fields: Mapping[str, Scalar] | None = None,
        *,
        source: str = HOST_SOURCE,
    ) -> Event:
        return self.bus.emit(severity, source, message, **dict(fields or {}))

    def timer(self, label: str, *, source: str = "measure") -> Timer:
        return Timer(self.bus, label, source=source)

    def execute(self, line: str) -> CommandResult | None:
        return self.registry.execute(line)

    def status(self) -> dict[str, Any]:
        return {
            "app_name": self.config.app_name,
            "running": self.bus.running,
            "drain_timeout_seconds": self.bus.drain_timeout,
            "backends": [
                {
                    "name": handle.name,
                    "policy": handle.policy.value,
                    "capacity": handle.queue.capacity,
                    "queued": len(handle.queue),
                    "delivered": handle.delivered,
                    "failed": handle.failed,
                    "dropped": handle.dropped,
                }
                for handle in self.bus.handles
            ],
        }

    def __enter__(self) -> Switchboard:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def _register_builtin_commands(self) -> None:
        registry = self.registry

        @registry.command("help", Parameter("command", required=False, help="Command to describe"))
        def help_command(command: str | None = None) -> str:
            """List commands or show one command's usage."""
            if command is None:
                return "commands: " + ", ".join(registry.names())
            if command not in registry:
                raise CommandFailed(f"unknown command: {command}")
            described = registry.get(command)
            return f"{described.usage()}" + (f" - {described.help}" if described.help else "")

        @registry.command(
            "emit",
            Parameter("message", help="Event message"),
            Parameter("severity", ParamType.ENUM, flag=True, required=False, default="info", choices=SEVERITY_CHOICES),
            Parameter("source", flag=True, required=False, default="console"),
        )
        def emit_command(message: str, severity: str, source: str) -> str:
            """Publish one event to the active backends."""
            self.bus.emit(severity, source, message)
            return f"published {severity} event from {source}"

        @registry.command("status")
        def status_command() -> str:
            """Show per-backend delivery counters."""
            lines = [
                f"{b['name']}: delivered={b['delivered']} failed={b['failed']} dropped={b['dropped']} queued={b['queued']}"
                for b in self.status()["backends"]
            ]
            return "\n".join(lines) if lines else "no backends enabled"
