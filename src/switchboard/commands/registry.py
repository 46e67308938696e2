"""Name to handler mapping with typed argument schemas."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from switchboard.commands.tokenizer import ParsedInvocation, parse_invocation
from switchboard.errors import (
    ArgumentError,
    CommandFailed,
    DuplicateCommand,
    RegistryFrozen,
    UnknownCommand,
)
from switchboard.models import CommandResult

_TRUE = frozenset({"1", "true", "yes", "on", "y"})
_FALSE = frozenset({"0", "false", "no", "off", "n"})

Handler = Callable[..., Any]


class ParamType(str, Enum):
    STRING = "str"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    ENUM = "enum"


@dataclass(frozen=True, slots=True)
class Parameter:
    """One typed entry of a command's usage schema."""

    name: str
    type: ParamType = ParamType.STRING
    required: bool = True
    default: Any = None
    flag: bool = False
    choices: tuple[str, ...] = ()
    minimum: float | None = None
    maximum: float | None = None
    help: str = ""

    def __post_init__(self) -> None:
        if self.type == ParamType.ENUM and not self.choices:
            raise ValueError(f"enum parameter {self.name!r} needs choices")
        if self.flag and self.type == ParamType.BOOL:
            object.__setattr__(self, "required", False)
            if self.default is None:
                object.__setattr__(self, "default", False)

    @property
    def expected(self) -> str:
        if self.type == ParamType.ENUM:
            return "one of " + "|".join(self.choices)
        if self.minimum is not None or self.maximum is not None:
            low = "-inf" if self.minimum is None else _fmt_number(self.minimum)
            high = "inf" if self.maximum is None else _fmt_number(self.maximum)
            return f"{self.type.value} in [{low}, {high}]"
        return self.type.value

    def coerce(self, raw: str | None, position: int | str) -> Any:
        """Convert a raw token to this parameter's type or raise ``ArgumentError``."""
        if raw is None:
            if self.type == ParamType.BOOL:
                return True
            raise ArgumentError(position, self.expected, None)

        if self.type == ParamType.STRING:
            return raw
        if self.type == ParamType.ENUM:
            if raw not in self.choices:
                raise ArgumentError(position, self.expected, raw)
            return raw
        if self.type == ParamType.BOOL:
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ArgumentError(position, self.expected, raw)

        try:
            value: int | float = int(raw) if self.type == ParamType.INT else float(raw)
        except ValueError:
            raise ArgumentError(position, self.expected, raw) from None
        if self.minimum is not None and value < self.minimum:
            raise ArgumentError(position, self.expected, raw)
        if self.maximum is not None and value > self.maximum:
            raise ArgumentError(position, self.expected, raw)
        return value

    def usage(self) -> str:
        if self.flag:
            text = f"--{self.name}" if self.type == ParamType.BOOL else f"--{self.name} <{self.type.value}>"
            return f"[{text}]"
        text = f"<{self.name}:{self.type.value}>"
        return text if self.required else f"[{text}]"


@dataclass(frozen=True, slots=True)
class Command:
    name: str
    schema: tuple[Parameter, ...]
    handler: Handler
    help: str = ""

    @property
    def positionals(self) -> tuple[Parameter, ...]:
        return tuple(param for param in self.schema if not param.flag)

    @property
    def flags(self) -> Mapping[str, Parameter]:
        return {param.name: param for param in self.schema if param.flag}

    @property
    def switches(self) -> frozenset[str]:
        """Boolean flags; they never consume the token after them."""
        return frozenset(param.name for param in self.schema if param.flag and param.type == ParamType.BOOL)

    def usage(self) -> str:
        return " ".join([self.name, *(param.usage() for param in self.schema)])

    def bind(self, invocation: ParsedInvocation) -> dict[str, Any]:
        """Validate an invocation against the schema and return handler kwargs."""
        values: dict[str, Any] = {}
        positionals = self.positionals

        if len(invocation.args) > len(positionals):
            extra = len(positionals)
            raise ArgumentError(extra, f"at most {len(positionals)} argument(s)", invocation.args[extra])

        for idx, param in enumerate(positionals):
            if idx < len(invocation.args):
                values[param.name] = param.coerce(invocation.args[idx], idx)
            elif param.required:
                raise ArgumentError(idx, param.expected, None)
            else:
                values[param.name] = param.default

        flag_params = self.flags
        for key, raw in invocation.flags.items():
            param = flag_params.get(key)
            if param is None:
                known = ", ".join(f"--{name}" for name in flag_params) or "no flags"
                raise ArgumentError(key, known, raw)
            values[param.name] = param.coerce(raw, key)

        for name, param in flag_params.items():
            if name in values:
                continue
            if param.required:
                raise ArgumentError(name, param.expected, None)
            values[name] = param.default

        return values


class CommandRegistry:
    """Registry of console commands.

    Registration happens during startup; ``freeze()`` closes it. Lookups are
    safe from any thread.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._commands: dict[str, Command] = {}
        self._lock = threading.Lock()
        self._frozen = False
        self._logger = logger or logging.getLogger("switchboard.commands")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        name: str,
        schema: Sequence[Parameter],
        handler: Handler,
        *,
        help: str = "",
    ) -> Command:
        command = Command(name=name, schema=tuple(schema), handler=handler, help=help)
        with self._lock:
            if self._frozen:
                raise RegistryFrozen(f"cannot register {name!r}: registry is frozen")
            if name in self._commands:
                raise DuplicateCommand(name)
            # Copy-on-write so concurrent readers never see a dict mid-update.
            commands = dict(self._commands)
            commands[name] = command
            self._commands = commands
        self._logger.debug("command_registered", extra={"command": name})
        return command

    def command(self, name: str, *schema: Parameter, help: str = "") -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`."""

        def decorator(func: Handler) -> Handler:
            self.register(name, schema, func, help=help or (func.__doc__ or "").strip())
            return func

        return decorator

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True
        self._logger.debug("command_registry_frozen", extra={"commands": len(self._commands)})

    def get(self, name: str) -> Command:
        command = self._commands.get(name)
        if command is None:
            raise UnknownCommand(name)
        return command

    def names(self) -> list[str]:
        return sorted(self._commands)

    def usage(self, name: str) -> str:
        return self.get(name).usage()

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)

    def dispatch(self, invocation: ParsedInvocation) -> CommandResult:
        """Validate and run one invocation synchronously on the calling thread."""
        command = self.get(invocation.name)
        values = command.bind(invocation)
        self._logger.debug("command_dispatched", extra={"command": command.name})
        try:
            outcome = command.handler(**values)
        except CommandFailed as exc:
            return CommandResult(ok=False, message=str(exc))
        return CommandResult.from_handler(outcome)

    def parse(self, line: str) -> ParsedInvocation | None:
        """Tokenize a line, honouring the boolean flags of the named command."""
        invocation = parse_invocation(line)
        if invocation is None:
            return None
        command = self._commands.get(invocation.name)
        if command is None or not command.switches:
            return invocation
        return parse_invocation(line, command.switches)

    def execute(self, line: str) -> CommandResult | None:
        """Tokenize and dispatch a line; blank lines return ``None``."""
        invocation = self.parse(line)
        if invocation is None:
            return None
        return self.dispatch(invocation)


def _fmt_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
