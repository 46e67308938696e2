"""Speech backend rendering events as spoken announcements.

Announcements go through a single pending slot played by one announcer
thread: an utterance always plays to completion, and a newer announcement
replaces one that has not started yet.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from switchboard.backends.base import FilteredBackend
from switchboard.models import Event, Severity
from switchboard.speech.interfaces import AudioOutputDevice, SpeechSynthesizer

DEFAULT_TEMPLATE = "{message}"
DEFAULT_MAX_CHARS = 500


class _BlankMissing(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_announcement(template: str, event: Event) -> str:
    """Fill ``template`` with the event's message, source, severity and fields."""
    context: dict[str, Any] = _BlankMissing(event.fields)
    context.update(message=event.message, source=event.source, severity=event.severity.name.lower())
    try:
        text = template.format_map(context)
    except (ValueError, AttributeError, IndexError, KeyError):
        text = event.message
    return " ".join(text.split())


class AnnouncementSlot:
    """Holds at most one pending announcement."""

    def __init__(self) -> None:
        self._pending: str | None = None
        self._cond = threading.Condition()
        self._closed = False

    @property
    def pending(self) -> str | None:
        with self._cond:
            return self._pending

    def put(self, text: str) -> str | None:
        """Store ``text``; returns the announcement it replaced, if any."""
        with self._cond:
            if self._closed:
                return text
            replaced, self._pending = self._pending, text
            self._cond.notify_all()
            return replaced

    def take(self, timeout: float | None = None) -> str | None:
        with self._cond:
            self._cond.wait_for(lambda: self._pending is not None or self._closed, timeout)
            text, self._pending = self._pending, None
            return text

    def close(self) -> str | None:
        with self._cond:
            self._closed = True
            dropped, self._pending = self._pending, None
            self._cond.notify_all()
            return dropped


class SpeechBackend(FilteredBackend):
    """Speaks event messages through a synthesizer and audio device."""

    name = "speech"

    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        output_device: AudioOutputDevice,
        *,
        min_severity: Severity | str,
        template: str = DEFAULT_TEMPLATE,
        max_chars: int = DEFAULT_MAX_CHARS,
        close_timeout_seconds: float = 1.0,
        name: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(min_severity=min_severity, name=name, logger=logger)
        self._synthesizer = synthesizer
        self._output_device = output_device
        self._template = template
        self._max_chars = max_chars
        self._close_timeout_seconds = close_timeout_seconds
        self._slot = AnnouncementSlot()
        self._thread: threading.Thread | None = None
        self._thread_lock = threading.Lock()
        self.spoken: int = 0
        self.replaced: int = 0

    @property
    def slot(self) -> AnnouncementSlot:
        return self._slot

    def open(self) -> None:
        with self._thread_lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._announce_loop,
                name=f"switchboard-{self.name}-announcer",
                daemon=True,
            )
            self._thread.start()

    def deliver(self, event: Event) -> None:
        text = render_announcement(self._template, event)[: self._max_chars]
        if not text:
            return
        self.open()
        replaced = self._slot.put(text)
        if replaced is not None:
            self.replaced += 1
            self._logger.debug("announcement_replaced", extra={"dropped": replaced})

    def speak(self, text: str) -> None:
        """Synthesize and play one utterance on the calling thread."""
        audio = self._synthesizer.synthesize(text)
        self._output_device.play(audio)
        self.spoken += 1

    def close(self) -> None:
        dropped = self._slot.close()
        if dropped is not None:
            self._logger.debug("announcement_discarded", extra={"dropped": dropped})
        thread = self._thread
        if thread is not None:
            thread.join(self._close_timeout_seconds)
            stop = getattr(self._output_device, "stop", None)
            if thread.is_alive() and callable(stop):
                stop()

    def _announce_loop(self) -> None:
        while True:
            text = self._slot.take()
            if text is None:
                return
            try:
                self.speak(text)
            except Exception as exc:  # noqa: BLE001
                self._logger.exception("announcement_failed")
                self._report(text, exc)

    def _report(self, text: str, exc: Exception) -> None:
        if self._bus is None:
            return
        self._bus.publish_diagnostic(
            Event(
                severity=Severity.WARN,
                source=self.name,
                message=f"speech announcement failed: {text[:80]}",
                fields={"internal": True, "error": f"{type(exc).__name__}: {exc}"},
            )
        )
