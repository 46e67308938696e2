"""Error taxonomy for the command layer, tokenizer, bus and backends."""

from __future__ import annotations


class SwitchboardError(Exception):
    """Base class for every error raised by switchboard."""


class DuplicateCommand(SwitchboardError):
    def __init__(self, name: str) -> None:
        super().__init__(f"command already registered: {name}")
        self.name = name


class UnknownCommand(SwitchboardError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown command: {name}")
        self.name = name


class RegistryFrozen(SwitchboardError):
    """Raised when registering after the startup phase has ended."""


class ArgumentError(SwitchboardError):
    """An invocation argument does not match the command's usage schema.

    ``position`` is the 0-based index for positional arguments and the flag
    name for flags.
    """

    def __init__(self, position: int | str, expected: str, got: str | None) -> None:
        where = f"argument {position}" if isinstance(position, int) else f"flag --{position}"
        shown = "nothing" if got is None else repr(got)
        super().__init__(f"{where}: expected {expected}, got {shown}")
        self.position = position
        self.expected = expected
        self.got = got


class CommandFailed(SwitchboardError):
    """Raised by handlers to report a failure without a traceback."""


class TokenizeError(SwitchboardError):
    """Input line could not be split into tokens."""


class UnterminatedQuote(TokenizeError):
    def __init__(self, quote: str) -> None:
        super().__init__(f"unterminated {quote} quote")
        self.quote = quote


class DanglingEscape(TokenizeError):
    def __init__(self) -> None:
        super().__init__("line ends with an unescaped backslash")


class BusStateError(SwitchboardError):
    """Event bus used outside its lifecycle (e.g. subscribe after start)."""


class QueueSaturated(SwitchboardError):
    """Delivery queue is full and the incoming event was rejected."""


class BackendDeliveryFailure(SwitchboardError):
    """A backend gave up on delivering an event."""

    def __init__(self, backend: str, attempts: int, cause: BaseException | None = None) -> None:
        detail = f": {type(cause).__name__}: {cause}" if cause is not None else ""
        super().__init__(f"{backend} failed after {attempts} attempt(s){detail}")
        self.backend = backend
        self.attempts = attempts
        self.cause = cause


class TransientTransportError(SwitchboardError):
    """Transport failure worth retrying (timeouts, 5xx, rate limits)."""


class BackendUnavailableError(RuntimeError):
    """Optional backend library is not installed."""
