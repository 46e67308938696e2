"""Contract every optional event sink implements."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from switchboard.models import Event, Severity

if TYPE_CHECKING:
    from switchboard.bus import EventBus


@runtime_checkable
class Backend(Protocol):
    """Optional sink turning events into an external effect.

    ``accept`` runs on the producer's thread and must be fast and
    non-blocking. ``deliver`` runs on the backend's own worker and may block
    or raise. Backends may also define ``bind(bus)``, ``open()`` and
    ``close()`` lifecycle hooks.
    """

    name: str

    def accept(self, event: Event) -> bool:
        """Return whether ``event`` is relevant to this sink."""

    def deliver(self, event: Event) -> None:
        """Push ``event`` to the external sink."""


class FilteredBackend:
    """Base for backends with a severity floor and source-tag exemption.

    Events whose ``source`` equals the backend's own name are never accepted,
    so a backend's diagnostics cannot feed back into itself.
    """

    name = "backend"

    def __init__(
        self,
        *,
        min_severity: Severity | str,
        name: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if name:
            self.name = name
        self.min_severity = Severity.parse(min_severity)
        self._logger = logger or logging.getLogger(f"switchboard.backends.{self.name}")
        self._bus: EventBus | None = None

    def bind(self, bus: EventBus) -> None:
        self._bus = bus

    def accept(self, event: Event) -> bool:
        return event.source != self.name and event.severity >= self.min_severity

    def deliver(self, event: Event) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, min_severity={self.min_severity.name})"
