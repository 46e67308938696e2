"""Command console: tokenizer and registry."""

from .registry import Command, CommandRegistry, Parameter, ParamType
from .tokenizer import ParsedInvocation, parse_invocation, tokenize

__all__ = [
    "Command",
    "CommandRegistry",
    "ParamType",
    "Parameter",
    "ParsedInvocation",
    "parse_invocation",
    "tokenize",
]
