"""Thread-backed event bus fanning events out to backend workers.

Every subscribed backend gets its own bounded queue and a dedicated worker
thread that drains it sequentially, so delivery order per backend matches
publish order and a slow backend only ever stalls its own worker.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from switchboard.errors import BusStateError, QueueSaturated
from switchboard.models import BackpressurePolicy, Event, Scalar, Severity

if TYPE_CHECKING:
    from switchboard.backends.base import Backend

DEFAULT_QUEUE_CAPACITY = 1_024
DEFAULT_DRAIN_TIMEOUT_SECONDS = 5.0


class DeliveryQueue:
    """Bounded FIFO with per-call backpressure policy."""

    def __init__(self, capacity: int = DEFAULT_QUEUE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("queue capacity must be at least 1")
        self._capacity = capacity
        self._items: deque[Event] = deque()
        self._cond = threading.Condition()
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def put(self, event: Event, policy: BackpressurePolicy) -> Event | None:
        """Enqueue ``event``.

        Returns the evicted head under ``DROP_OLDEST``; raises ``QueueSaturated``
        when the incoming event is rejected.
        """
        with self._cond:
            if self._closed:
                raise QueueSaturated("queue is closed")

            evicted: Event | None = None
            if len(self._items) >= self._capacity:
                if policy == BackpressurePolicy.DROP_NEWEST:
                    raise QueueSaturated(f"queue full ({self._capacity})")
                if policy == BackpressurePolicy.DROP_OLDEST:
                    evicted = self._items.popleft()
                else:
                    while len(self._items) >= self._capacity and not self._closed:
                        self._cond.wait()
                    if self._closed:
                        raise QueueSaturated("queue closed while waiting for space")

            self._items.append(event)
            self._cond.notify_all()
            return evicted

    def get(self, timeout: float | None = None) -> Event | None:
        """Pop the head; ``None`` once closed and empty, or on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._items:
                if self._closed:
                    return None
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                self._cond.wait(remaining)
            event = self._items.popleft()
            self._cond.notify_all()
            return event

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def clear(self) -> int:
        with self._cond:
            count = len(self._items)
            self._items.clear()
            self._cond.notify_all()
            return count


@dataclass(slots=True)
class ShutdownReport:
    backend: str
    drained: bool
    delivered: int
    failed: int
    dropped: int
    discarded: int


class BackendHandle:
    """One active backend with its queue, policy, counters and worker thread."""

    def __init__(
        self,
        backend: Backend,
        bus: EventBus,
        *,
        policy: BackpressurePolicy = BackpressurePolicy.DROP_OLDEST,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
        logger: logging.Logger | None = None,
    ) -> None:
        self.backend = backend
        self.policy = BackpressurePolicy(policy)
        self._bus = bus
        self._queue = DeliveryQueue(capacity)
        self._logger = logger or logging.getLogger("switchboard.bus")
        self._thread: threading.Thread | None = None
        self._abandoned = threading.Event()
        self._counter_lock = threading.Lock()
        self.delivered = 0
        self.failed = 0
        self.dropped = 0
        self.discarded = 0

    @property
    def name(self) -> str:
        return self.backend.name

    @property
    def queue(self) -> DeliveryQueue:
        return self._queue

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def offer(self, event: Event, *, policy: BackpressurePolicy | None = None) -> bool:
        """Filter and enqueue ``event``; never raises."""
        try:
            relevant = self.backend.accept(event)
        except Exception:  # noqa: BLE001
            self._logger.exception("backend_accept_failed", extra={"backend": self.name})
            return False
        if not relevant:
            return False

        effective = policy or self.policy
        if effective == BackpressurePolicy.BLOCK and self._thread is None:
            # No worker yet to free space.
            effective = BackpressurePolicy.DROP_NEWEST
        try:
            evicted = self._queue.put(event, effective)
        except QueueSaturated as exc:
            self._record_drop(event, reason=str(exc))
            return False
        if evicted is not None:
            self._record_drop(evicted, reason="evicted oldest")
        return True

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._worker_loop,
            name=f"switchboard-backend-{self.name}",
            daemon=True,
        )
        self._thread.start()

    def close(self) -> None:
        """Stop accepting events; the worker exits once the queue is drained."""
        self._queue.close()

    def join(self, timeout: float | None) -> bool:
        """Wait for the worker to drain; ``True`` if nothing is left behind."""
        if self._thread is None:
            return len(self._queue) == 0
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def abandon(self) -> int:
        """Discard whatever is still queued and detach from a stuck worker."""
        self._abandoned.set()
        discarded = self._queue.clear()
        with self._counter_lock:
            self.discarded += discarded
        return discarded

    def report(self, *, drained: bool) -> ShutdownReport:
        return ShutdownReport(
            backend=self.name,
            drained=drained,
            delivered=self.delivered,
            failed=self.failed,
            dropped=self.dropped,
            discarded=self.discarded,
        )

    def _worker_loop(self) -> None:
        self._logger.debug("backend_worker_started", extra={"backend": self.name})
        while not self._abandoned.is_set():
            event = self._queue.get()
            if event is None:
                break
            if self._abandoned.is_set():
                with self._counter_lock:
                    self.discarded += 1
                break
            self._deliver(event)
        self._logger.debug("backend_worker_stopped", extra={"backend": self.name})

    def _deliver(self, event: Event) -> None:
        try:
            self.backend.deliver(event)
        except Exception as exc:  # noqa: BLE001
            with self._counter_lock:
                self.failed += 1
            self._logger.exception(
                "backend_delivery_failed",
                extra={"backend": self.name, "event_source": event.source, "severity": event.severity.name},
            )
            self._bus.report_failure(self, event, exc)
        else:
            with self._counter_lock:
                self.delivered += 1

    def _record_drop(self, event: Event, *, reason: str) -> None:
        with self._counter_lock:
            self.dropped += 1
        self._logger.debug(
            "queue_saturated",
            extra={"backend": self.name, "event_source": event.source, "reason": reason},
        )


class _BusState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class EventBus:
    """Fan-out pipeline delivering events to every subscribed backend.

    The subscriber list is fixed once ``start()`` runs; ``publish`` iterates
    it without locking.
    """

    def __init__(
        self,
        *,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT_SECONDS,
        default_capacity: int = DEFAULT_QUEUE_CAPACITY,
        default_policy: BackpressurePolicy = BackpressurePolicy.DROP_OLDEST,
        logger: logging.Logger | None = None,
    ) -> None:
        self._drain_timeout = drain_timeout
        self._default_capacity = default_capacity
        self._default_policy = BackpressurePolicy(default_policy)
        self._logger = logger or logging.getLogger("switchboard.bus")
        self._handles: tuple[BackendHandle, ...] = ()
        self._state = _BusState.CREATED
        self._state_lock = threading.Lock()

    @property
    def handles(self) -> tuple[BackendHandle, ...]:
        return self._handles

    @property
    def drain_timeout(self) -> float:
        return self._drain_timeout

    @property
    def running(self) -> bool:
        return self._state == _BusState.RUNNING

    def handle(self, name: str) -> BackendHandle:
        for handle in self._handles:
            if handle.name == name:
                return handle
        raise KeyError(f"no backend named {name!r}")

    def subscribe(
        self,
        backend: Backend,
        *,
        policy: BackpressurePolicy | None = None,
        capacity: int | None = None,
    ) -> BackendHandle:
        """Register a backend during startup."""
        with self._state_lock:
            if self._state != _BusState.CREATED:
                raise BusStateError(f"cannot subscribe {backend.name!r}: bus is {self._state.value}")
            if any(handle.name == backend.name for handle in self._handles):
                raise BusStateError(f"backend {backend.name!r} is already subscribed")

            handle = BackendHandle(
                backend,
                self,
                policy=policy or self._default_policy,
                capacity=capacity or self._default_capacity,
                logger=self._logger,
            )
            self._handles = (*self._handles, handle)

        bind = getattr(backend, "bind", None)
        if callable(bind):
            bind(self)
        self._logger.info(
            "backend_subscribed",
            extra={"backend": backend.name, "policy": handle.policy.value, "capacity": handle.queue.capacity},
        )
        return handle

    def start(self) -> None:
        with self._state_lock:
            if self._state != _BusState.CREATED:
                return
            self._state = _BusState.RUNNING

        for handle in self._handles:
            _call_hook(handle.backend, "open", self._logger)
            handle.start()
        self._logger.info("event_bus_started", extra={"backends": [h.name for h in self._handles]})

    def publish(self, event: Event) -> None:
        """Enqueue ``event`` for every interested backend, in publish order."""
        if self._state in (_BusState.STOPPING, _BusState.STOPPED):
            self._logger.debug("event_dropped_after_shutdown", extra={"event_source": event.source})
            return
        for handle in self._handles:
            handle.offer(event)

    def emit(self, severity: Severity | str, source: str, message: str, /, **fields: Scalar) -> Event:
        event = Event(severity=Severity.parse(severity), source=source, message=message, fields=fields)
        self.publish(event)
        return event

    def publish_diagnostic(self, diagnostic: Event) -> None:
        """Offer an internal event to every backend except its source.

        Diagnostics never block: a full queue drops the diagnostic.
        """
        if self._state == _BusState.STOPPED:
            return
        for handle in self._handles:
            if handle.name != diagnostic.source:
                handle.offer(diagnostic, policy=BackpressurePolicy.DROP_NEWEST)

    def report_failure(self, handle: BackendHandle, event: Event, exc: BaseException) -> None:
        """Publish one WARN diagnostic for a failed delivery.

        Failures on diagnostics themselves are not reported again.
        """
        if event.internal:
            return
        self.publish_diagnostic(
            Event(
                severity=Severity.WARN,
                source=handle.name,
                message=f"{handle.name} failed to deliver event from {event.source}",
                fields={"internal": True, "failed_source": event.source, "error": f"{type(exc).__name__}: {exc}"},
            )
        )

    def shutdown(self, timeout: float | None = None) -> list[ShutdownReport]:
        """Drain each backend within the timeout, then discard the rest.

        Never raises and never waits longer than ``timeout`` per backend.
        """
        with self._state_lock:
            if self._state in (_BusState.STOPPING, _BusState.STOPPED):
                return []
            self._state = _BusState.STOPPING

        limit = self._drain_timeout if timeout is None else timeout
        for handle in self._handles:
            handle.close()

        reports: list[ShutdownReport] = []
        for handle in self._handles:
            drained = handle.join(limit)
            if drained:
                _call_hook(handle.backend, "close", self._logger)
            else:
                discarded = handle.abandon()
                self._logger.warning(
                    "backend_drain_timeout",
                    extra={"backend": handle.name, "timeout_seconds": limit, "discarded": discarded},
                )
                # close() may wait on whatever the stuck deliver holds.
                threading.Thread(
                    target=_call_hook,
                    args=(handle.backend, "close", self._logger),
                    name=f"switchboard-close-{handle.name}",
                    daemon=True,
                ).start()
            reports.append(handle.report(drained=drained))

        with self._state_lock:
            self._state = _BusState.STOPPED
        self._logger.info("event_bus_stopped", extra={"backends": [r.backend for r in reports]})
        return reports

    def __enter__(self) -> EventBus:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()


def _call_hook(backend: Any, hook: str, logger: logging.Logger) -> None:
    func = getattr(backend, hook, None)
    if not callable(func):
        return
    try:
        func()
    except Exception:  # noqa: BLE001
        logger.exception("backend_hook_failed", extra={"backend": getattr(backend, "name", "?"), "hook": hook})
