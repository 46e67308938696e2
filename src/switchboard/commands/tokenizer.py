"""Shell-style line tokenizer for the command console."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Collection, Mapping

from switchboard.errors import DanglingEscape, UnterminatedQuote

_QUOTES = ("'", '"')
FLAG_PREFIX = "--"


@dataclass(frozen=True, slots=True)
class ParsedInvocation:
    """One tokenized command request."""

    name: str
    args: tuple[str, ...] = ()
    flags: Mapping[str, str | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "flags", MappingProxyType(dict(self.flags)))


def tokenize(line: str) -> list[str]:
    """Split ``line`` into tokens.

    Quotes strip themselves and their content is literal, except that a
    backslash may escape the enclosing quote character or another backslash.
    Outside quotes a backslash escapes any next character.
    """
    tokens: list[str] = []
    current: list[str] = []
    in_token = False
    quote: str | None = None
    chars = iter(line)

    for char in chars:
        if quote is not None:
            if char == quote:
                quote = None
            elif char == "\\":
                nxt = next(chars, None)
                if nxt is None:
                    raise UnterminatedQuote("single" if quote == "'" else "double")
                if nxt in (quote, "\\"):
                    current.append(nxt)
                else:
                    current.extend((char, nxt))
            else:
                current.append(char)
        elif char == "\\":
            nxt = next(chars, None)
            if nxt is None:
                raise DanglingEscape()
            current.append(nxt)
            in_token = True
        elif char in _QUOTES:
            quote = char
            in_token = True
        elif char.isspace():
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
        else:
            current.append(char)
            in_token = True

    if quote is not None:
        raise UnterminatedQuote("single" if quote == "'" else "double")
    if in_token:
        tokens.append("".join(current))
    return tokens


def parse_invocation(line: str, switches: Collection[str] = ()) -> ParsedInvocation | None:
    """Tokenize a line into a command name, positional args and flags.

    Flags named in ``switches`` never take the following token as their
    value; they only accept ``--name=value``. Returns ``None`` for blank lines.
    """
    tokens = tokenize(line)
    if not tokens:
        return None

    name, rest = tokens[0], tokens[1:]
    args: list[str] = []
    flags: dict[str, str | None] = {}
    only_positional = False
    idx = 0
    while idx < len(rest):
        token = rest[idx]
        idx += 1
        if only_positional or not _is_flag(token):
            args.append(token)
            continue
        if token == FLAG_PREFIX:
            only_positional = True
            continue

        key = token[len(FLAG_PREFIX) :]
        if "=" in key:
            key, value = key.split("=", 1)
            flags[key] = value
        elif key not in switches and idx < len(rest) and not _is_flag(rest[idx]):
            flags[key] = rest[idx]
            idx += 1
        else:
            flags[key] = None

    return ParsedInvocation(name=name, args=tuple(args), flags=flags)


def _is_flag(token: str) -> bool:
    return token.startswith(FLAG_PREFIX)
