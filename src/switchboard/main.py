"""CLI entrypoint for switchboard."""

from __future__ import annotations

import typer
from rich import print

from switchboard.config import Settings, settings
from switchboard.errors import BackendUnavailableError
from switchboard.host import SEVERITY_CHOICES, Switchboard
from switchboard.models import Severity
from switchboard.repl import Repl
from switchboard.telemetry.logging import LoggingSetup

app = typer.Typer(help="Switchboard command console and event router")


def _configure_logging(config: Settings, *, console: bool) -> None:
    setup = LoggingSetup.empty().with_level(config.log_level)
    if console:
        setup = setup.with_stdout()
    if config.log_file:
        setup = setup.with_file(config.log_file)
    setup.init()


def _build_host(config: Settings) -> Switchboard:
    try:
        return Switchboard(config)
    except BackendUnavailableError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)


def _parse_fields(values: list[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {item!r}", param_hint="--field")
        fields[key] = value
    return fields


@app.command()
def status() -> None:
    """Show resolved configuration and enabled backends."""
    print(
        {
            "app_name": settings.app_name,
            "log_level": settings.log_level,
            "drain_timeout_seconds": settings.drain_timeout_seconds,
            "enabled_backends": settings.enabled_backends(),
            "backends": {
                name: getattr(settings, name).model_dump(exclude={"token"})
                for name in ("chat", "speech", "tracing")
            },
        }
    )


@app.command()
def repl() -> None:
    """Run the interactive command console until exit/quit or EOF."""
    _configure_logging(settings, console=False)
    host = _build_host(settings)
    host.start()
    print({"repl": "started", "backends": [h.name for h in host.bus.handles], "hint": "Type 'help' or 'exit'."})
    try:
        Repl(host.registry).run()
    finally:
        reports = host.shutdown()
    print({"repl": "stopped", "shutdown": [report.backend for report in reports if not report.drained] or "clean"})


@app.command()
def emit(
    message: str,
    severity: str = typer.Option("info", help="One of: " + ", ".join(SEVERITY_CHOICES)),
    source: str = typer.Option("cli", help="Event source tag"),
    field: list[str] = typer.Option([], "--field", help="Extra event field as key=value (repeatable)"),
) -> None:
    """Publish one event through the configured backends and wait for delivery."""
    try:
        level = Severity.parse(severity)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--severity") from exc
    fields = _parse_fields(field)

    _configure_logging(settings, console=True)
    host = _build_host(settings)
    with host:
        event = host.emit(level, message, fields, source=source)
    print({"published": event.to_dict(), "backends": [h.name for h in host.bus.handles]})


if __name__ == "__main__":
    app()
