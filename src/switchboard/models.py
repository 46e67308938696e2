from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Any, Mapping, Union

Scalar = Union[str, int, float, bool, None]

_SEVERITY_ALIASES = {
    "warning": "WARN",
    "err": "ERROR",
    "critical": "ERROR",
    "fatal": "ERROR",
}


class Severity(IntEnum):
    """Ordered event severities."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4

    @classmethod
    def parse(cls, value: Any) -> Severity:
        """Accept a Severity, its integer value or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if isinstance(value, str):
            key = value.strip()
            if key.isdigit():
                return cls(int(key))
            key = _SEVERITY_ALIASES.get(key.lower(), key).upper()
            try:
                return cls[key]
            except KeyError:
                pass
        choices = ", ".join(member.name.lower() for member in cls)
        raise ValueError(f"invalid severity {value!r} (expected one of: {choices})")

    def __str__(self) -> str:
        return self.name


class BackpressurePolicy(str, Enum):
    """What a producer experiences when a backend's queue is full."""

    BLOCK = "block"
    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable structured event routed through the bus."""

    severity: Severity
    source: str
    message: str
    fields: Mapping[str, Scalar] = field(default_factory=dict, hash=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "severity", Severity.parse(self.severity))
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def internal(self) -> bool:
        """Diagnostic events emitted by the core about backend trouble."""
        return bool(self.fields.get("internal"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.name,
            "source": self.source,
            "message": self.message,
            "fields": dict(self.fields),
        }


@dataclass(slots=True)
class CommandResult:
    ok: bool = True
    message: str | None = None

    @classmethod
    def from_handler(cls, value: Any) -> CommandResult:
        if isinstance(value, CommandResult):
            return value
        if value is None:
            return cls()
        return cls(message=str(value))

    def render(self) -> str:
        if self.ok:
            return f"OK: {self.message}" if self.message else "OK"
        return f"ERROR: {self.message or 'command failed'}"
