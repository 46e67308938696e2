"""Lightweight timing: scoped timers publishing durations, and a throughput-measuring reader."""

from __future__ import annotations

import functools
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import IO, Any, Callable, ParamSpec, Protocol, TypeVar

from switchboard.models import Event, Severity

P = ParamSpec("P")
R = TypeVar("R")

MEASURE_SOURCE = "measure"

# Smoothing factor of the throughput moving average.
ALPHA = 0.5
# Minimum window before the average is updated; shorter reads are too noisy.
UPDATE_INTERVAL_SECONDS = 0.010


class Publisher(Protocol):
    def publish(self, event: Event) -> None: ...


class Timer:
    """Measures one scope and publishes a DEBUG event with ``duration_ms``.

    Use as a context manager or call ``start``/``stop`` explicitly. Stopping
    twice publishes once.
    """

    def __init__(self, bus: Publisher, label: str, *, source: str = MEASURE_SOURCE) -> None:
        self._bus = bus
        self.label = label
        self.source = source
        self._started: float | None = None
        self._elapsed_ms: float | None = None
        self._lock = threading.Lock()

    @property
    def elapsed_ms(self) -> float | None:
        return self._elapsed_ms

    def start(self) -> Timer:
        self._started = time.perf_counter()
        self._elapsed_ms = None
        return self

    def stop(self) -> float:
        with self._lock:
            if self._elapsed_ms is not None:
                return self._elapsed_ms
            if self._started is None:
                raise RuntimeError(f"timer {self.label!r} was never started")
            self._elapsed_ms = (time.perf_counter() - self._started) * 1000

        self._bus.publish(
            Event(
                severity=Severity.DEBUG,
                source=self.source,
                message=f"{self.label} took {self._elapsed_ms:.3f} ms",
                fields={"label": self.label, "duration_ms": self._elapsed_ms},
            )
        )
        return self._elapsed_ms

    def __enter__(self) -> Timer:
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


def start_timer(bus: Publisher, label: str, *, source: str = MEASURE_SOURCE) -> Timer:
    return Timer(bus, label, source=source).start()


def measured(bus: Publisher, label: str | None = None) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator timing every call of the wrapped function."""

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        name = label or func.__qualname__

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with Timer(bus, name):
                return func(*args, **kwargs)

        return wrapper

    return decorator


@dataclass(frozen=True, slots=True)
class Average:
    """Smoothed throughput in bytes per second."""

    value: float

    @property
    def bytes_per_second(self) -> float:
        return self.value

    @property
    def kilobytes_per_second(self) -> float:
        return self.value / 1_000

    @property
    def megabytes_per_second(self) -> float:
        return self.value / 1_000_000


class MeasuringReader:
    """Wraps a binary reader and tracks total bytes and smoothed throughput."""

    def __init__(
        self,
        inner: IO[bytes],
        size_hint: int | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._inner = inner
        self.size_hint = size_hint
        self._clock = clock
        self._total = 0
        self._avg = 0.0
        self._window_start = clock()
        self._window_bytes = 0

    @property
    def total(self) -> int:
        return self._total

    def avg(self) -> Average:
        return Average(self._avg)

    def read(self, size: int = -1) -> bytes:
        data = self._inner.read(size)
        self._account(len(data))
        return data

    def readinto(self, buffer: bytearray | memoryview) -> int:
        count = self._inner.readinto(buffer)  # type: ignore[attr-defined]
        self._account(count or 0)
        return count

    def time_remaining(self) -> timedelta | None:
        """``None`` without a size hint or before any throughput is known."""
        if self.size_hint is None or self._avg <= 0:
            return None
        remaining = max(0, self.size_hint - self._total)
        return timedelta(seconds=remaining / self._avg)

    def percentage(self) -> float | None:
        if not self.size_hint:
            return None
        return self._total / self.size_hint * 100.0

    def _account(self, count: int) -> None:
        now = self._clock()
        elapsed = now - self._window_start
        self._window_bytes += count
        if elapsed >= UPDATE_INTERVAL_SECONDS:
            speed = self._window_bytes / elapsed
            self._avg = ALPHA * speed + (1 - ALPHA) * self._avg
            self._window_start = now
            self._window_bytes = 0
        self._total += count

    def __getattr__(self, item: str) -> Any:
        return getattr(self._inner, item)
