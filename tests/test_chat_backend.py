from __future__ import annotations

import json
import time

import httpx
import pytest

from switchboard.backends.chat import (
    ChatAlert,
    ChatAlertBackend,
    TelegramTransport,
    WebhookTransport,
)
from switchboard.bus import EventBus
from switchboard.errors import BackendDeliveryFailure, TransientTransportError
from switchboard.models import Event, Severity


def _event(message: str = "disk full", severity: Severity = Severity.ERROR) -> Event:
    return Event(severity=severity, source="storage", message=message)


class FlakyTransport:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0
        self.sent: list[ChatAlert] = []

    def send(self, alert: ChatAlert) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientTransportError("timeout")
        self.sent.append(alert)


class Recorder:
    name = "recorder"

    def __init__(self) -> None:
        self.received: list[Event] = []

    def accept(self, event: Event) -> bool:
        return True

    def deliver(self, event: Event) -> None:
        self.received.append(event)


def test_transient_failures_are_retried_with_exponential_backoff() -> None:
    transport = FlakyTransport(failures=2)
    sleeps: list[float] = []
    backend = ChatAlertBackend(transport, min_severity="warn", base_delay_seconds=0.5, sleep=sleeps.append)

    backend.deliver(_event())

    assert transport.calls == 3
    assert [alert.message for alert in transport.sent] == ["disk full"]
    assert sleeps == [0.5, 1.0]


def test_retries_are_bounded_and_backoff_capped() -> None:
    transport = FlakyTransport(failures=100)
    sleeps: list[float] = []
    backend = ChatAlertBackend(
        transport,
        min_severity="warn",
        max_attempts=4,
        base_delay_seconds=1.0,
        max_delay_seconds=1.5,
        sleep=sleeps.append,
    )

    with pytest.raises(BackendDeliveryFailure) as excinfo:
        backend.deliver(_event())

    assert transport.calls == 4
    assert excinfo.value.attempts == 4
    assert sleeps == [1.0, 1.5, 1.5]


def test_permanent_http_errors_are_not_retried() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(400)))
    backend = ChatAlertBackend(WebhookTransport("https://hooks.example/alert", client=client), min_severity="warn")

    with pytest.raises(BackendDeliveryFailure) as excinfo:
        backend.deliver(_event())

    assert excinfo.value.attempts == 1
    assert backend.attempts == 1


def test_accept_applies_severity_floor_and_own_source_exemption() -> None:
    backend = ChatAlertBackend(FlakyTransport(0), min_severity=Severity.WARN)

    assert backend.accept(_event(severity=Severity.WARN))
    assert not backend.accept(_event(severity=Severity.INFO))
    assert not backend.accept(Event(severity=Severity.ERROR, source="chat", message="chat failed"))


def test_exhausted_retries_emit_one_warning_that_chat_ignores() -> None:
    transport = FlakyTransport(failures=100)
    chat = ChatAlertBackend(transport, min_severity="warn", max_attempts=2, sleep=lambda _: None)
    recorder = Recorder()
    bus = EventBus()
    chat_handle = bus.subscribe(chat)
    bus.subscribe(recorder)
    bus.start()

    for idx in range(3):
        bus.publish(_event(f"alert-{idx}"))

    deadline = time.monotonic() + 2
    while len(recorder.received) < 6 and time.monotonic() < deadline:
        time.sleep(0.005)
    bus.shutdown(timeout=2)

    warnings = [event for event in recorder.received if event.source == "chat"]
    assert len(warnings) == 3
    assert all(event.severity == Severity.WARN and event.internal for event in warnings)
    assert chat_handle.failed == 3
    assert transport.calls == 6


def test_telegram_transport_posts_url_encoded_text() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    transport = TelegramTransport("123:abc", "42", client=client)

    transport.send_message("disk 95% full & rising")

    request = requests[0]
    assert request.method == "POST"
    assert request.url.scheme == "https"
    assert request.url.host == "api.telegram.org"
    assert request.url.path == "/bot123:abc/sendMessage"
    assert request.url.params["chat_id"] == "42"
    assert request.url.params["text"] == "disk 95% full & rising"


def test_telegram_server_errors_are_transient() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    transport = TelegramTransport("t", "c", client=client)

    with pytest.raises(TransientTransportError):
        transport.send(ChatAlert.from_event(_event()))


def test_telegram_requires_https() -> None:
    with pytest.raises(ValueError):
        TelegramTransport("t", "c", api_base="http://api.telegram.org")


def test_webhook_transport_posts_alert_payload() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    event = _event("cpu hot")

    WebhookTransport("https://hooks.example/alert", client=client).send(ChatAlert.from_event(event))

    assert bodies == [
        {
            "severity": "ERROR",
            "source": "storage",
            "message": "cpu hot",
            "timestamp": event.timestamp.isoformat(),
        }
    ]


def test_network_errors_are_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    backend = ChatAlertBackend(
        WebhookTransport("https://hooks.example/alert", client=client),
        min_severity="error",
        sleep=lambda _: None,
    )

    backend.deliver(_event())

    assert calls["count"] == 2
