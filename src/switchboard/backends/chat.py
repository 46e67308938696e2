"""Chat alert backend forwarding events to a remote chat service over HTTP."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol

import httpx

from switchboard.backends.base import FilteredBackend
from switchboard.errors import BackendDeliveryFailure, TransientTransportError
from switchboard.models import Event, Severity

HTTP_TIMEOUT_SECONDS = 10.0
TELEGRAM_API_BASE = "https://api.telegram.org"
_RETRYABLE_STATUS = frozenset({408, 425, 429})


@dataclass(slots=True)
class ChatAlert:
    """Minimal payload of one outbound chat message."""

    severity: Severity
    source: str
    message: str
    timestamp: datetime

    @classmethod
    def from_event(cls, event: Event) -> ChatAlert:
        return cls(severity=event.severity, source=event.source, message=event.message, timestamp=event.timestamp)

    def to_text(self) -> str:
        return f"[{self.severity.name}] {self.source}: {self.message} ({self.timestamp.isoformat()})"

    def to_payload(self) -> dict[str, Any]:
        return {
            "severity": self.severity.name,
            "source": self.source,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


class ChatTransport(Protocol):
    """Sends one alert to the remote chat service."""

    def send(self, alert: ChatAlert) -> None:
        """Raise ``TransientTransportError`` for failures worth retrying."""


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code in _RETRYABLE_STATUS or response.status_code >= 500:
        raise TransientTransportError(f"chat service responded {response.status_code}")
    response.raise_for_status()


class TelegramTransport:
    """Telegram bot ``sendMessage`` transport."""

    def __init__(
        self,
        token: str,
        chat_id: str,
        *,
        client: httpx.Client | None = None,
        api_base: str = TELEGRAM_API_BASE,
    ) -> None:
        if not api_base.startswith("https://"):
            raise ValueError("Telegram transport only supports https endpoints")
        self._client = client or httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)
        self._owns_client = client is None
        self._url = f"{api_base}/bot{token}/sendMessage"
        self._chat_id = chat_id

    def send_message(self, text: str) -> None:
        # httpx URL-encodes query params, so arbitrary text is safe here.
        response = self._client.post(self._url, params={"chat_id": self._chat_id, "text": text})
        _raise_for_status(response)

    def send(self, alert: ChatAlert) -> None:
        self.send_message(alert.to_text())

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class WebhookTransport:
    """Posts alerts as JSON to a generic webhook URL."""

    def __init__(self, url: str, *, client: httpx.Client | None = None) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)
        self._owns_client = client is None

    def send(self, alert: ChatAlert) -> None:
        response = self._client.post(self._url, json=alert.to_payload())
        _raise_for_status(response)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class ChatAlertBackend(FilteredBackend):
    """Forwards high-severity events to a chat transport with bounded retries."""

    name = "chat"

    def __init__(
        self,
        transport: ChatTransport,
        *,
        min_severity: Severity | str,
        max_attempts: int = 3,
        base_delay_seconds: float = 0.5,
        max_delay_seconds: float = 4.0,
        sleep: Callable[[float], None] = time.sleep,
        name: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(min_severity=min_severity, name=name, logger=logger)
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._transport = transport
        self._max_attempts = max_attempts
        self._base_delay_seconds = base_delay_seconds
        self._max_delay_seconds = max_delay_seconds
        self._sleep = sleep
        self.attempts = 0

    def backoff(self, attempt: int) -> float:
        """Delay before retrying after the given 1-based attempt."""
        return min(self._max_delay_seconds, self._base_delay_seconds * 2 ** (attempt - 1))

    def deliver(self, event: Event) -> None:
        alert = ChatAlert.from_event(event)
        last_error: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            self.attempts += 1
            try:
                self._transport.send(alert)
                self._logger.debug("chat_alert_sent", extra={"event_source": event.source, "attempt": attempt})
                return
            except (TransientTransportError, httpx.TransportError) as exc:
                last_error = exc
                self._logger.warning(
                    "chat_alert_transient_failure",
                    extra={"event_source": event.source, "attempt": attempt, "error": str(exc)},
                )
            except httpx.HTTPStatusError as exc:
                raise BackendDeliveryFailure(self.name, attempt, exc) from exc

            if attempt < self._max_attempts:
                self._sleep(self.backoff(attempt))

        raise BackendDeliveryFailure(self.name, self._max_attempts, last_error)

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if callable(close):
            close()
