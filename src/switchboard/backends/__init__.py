"""Optional event sinks and the contract they implement."""

from .base import Backend, FilteredBackend
from .chat import ChatAlert, ChatAlertBackend, ChatTransport, TelegramTransport, WebhookTransport
from .speech import AnnouncementSlot, SpeechBackend, render_announcement
from .tracing import CounterRecord, LoggingTraceSink, MemoryTraceSink, SpanRecord, TraceSink, TracingBackend

__all__ = [
    "AnnouncementSlot",
    "Backend",
    "ChatAlert",
    "ChatAlertBackend",
    "ChatTransport",
    "CounterRecord",
    "FilteredBackend",
    "LoggingTraceSink",
    "MemoryTraceSink",
    "SpanRecord",
    "SpeechBackend",
    "TelegramTransport",
    "TraceSink",
    "TracingBackend",
    "WebhookTransport",
    "render_announcement",
]
