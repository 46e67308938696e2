"""Command registry and event bus core with pluggable chat, speech and tracing backends."""

from switchboard.bus import BackendHandle, DeliveryQueue, EventBus, ShutdownReport
from switchboard.commands import CommandRegistry, Parameter, ParamType, ParsedInvocation, parse_invocation, tokenize
from switchboard.host import Switchboard
from switchboard.measure import MeasuringReader, Timer, measured, start_timer
from switchboard.models import BackpressurePolicy, CommandResult, Event, Severity

__all__ = [
    "BackendHandle",
    "BackpressurePolicy",
    "CommandRegistry",
    "CommandResult",
    "DeliveryQueue",
    "Event",
    "EventBus",
    "MeasuringReader",
    "ParamType",
    "Parameter",
    "ParsedInvocation",
    "Severity",
    "ShutdownReport",
    "Switchboard",
    "Timer",
    "measured",
    "parse_invocation",
    "start_timer",
    "tokenize",
]
