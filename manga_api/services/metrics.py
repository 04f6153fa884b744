# File: manga_api/services/metrics.py

"""
In-process request metrics.

Three fixed-size ring buffers hold the most recent response-time samples,
error events and slow-query events; a per-endpoint table keeps running
totals for the lifetime of the process. Nothing is persisted: a restart
starts from zero.

One ``MetricsRecorder`` is created per application and shared through
``app.state.metrics``. Slow-query events arrive from the worker threads
that run sync route handlers, so mutations take a lock.
"""

import math
import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable, Generic, Iterable, Optional, TypeVar

T = TypeVar("T")

RESPONSE_BUFFER_SIZE = 1000
ERROR_BUFFER_SIZE = 500
SLOW_QUERY_BUFFER_SIZE = 100

ONE_MINUTE_MS = 60 * 1000
FIVE_MINUTES_MS = 5 * ONE_MINUTE_MS


def now_ms() -> int:
    return int(time.time() * 1000)


class RingBuffer(Generic[T]):
    """Fixed-capacity FIFO; once full each push overwrites the oldest item."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._items: list[Optional[T]] = [None] * capacity
        self._next = 0
        self._size = 0

    def push(self, item: T) -> None:
        self._items[self._next] = item
        self._next = (self._next + 1) % self.capacity
        if self._size < self.capacity:
            self._size += 1

    def get_all(self) -> list[T]:
        """Contents, oldest first."""
        if self._size < self.capacity:
            return list(self._items[: self._size])
        return self._items[self._next:] + self._items[: self._next]

    def clear(self) -> None:
        self._items = [None] * self.capacity
        self._next = 0
        self._size = 0

    def __len__(self) -> int:
        return self._size


def percentile(values: Iterable[float], p: float) -> float:
    """
    Nearest-rank percentile: an actual element, never an interpolation.

    Returns 0 for empty input.
    """
    ordered = sorted(values)
    if not ordered:
        return 0
    index = math.ceil(p / 100 * len(ordered)) - 1
    index = max(0, min(index, len(ordered) - 1))
    return ordered[index]


@dataclass
class ResponseTimeSample:
    duration: float
    timestamp: int
    endpoint: str
    status_code: int


@dataclass
class ErrorEvent:
    message: str
    timestamp: int
    endpoint: Optional[str]
    status_code: Optional[int]


@dataclass
class SlowQueryEvent:
    query: str
    duration: float
    timestamp: int


@dataclass
class EndpointAggregate:
    count: int = 0
    total_time: float = 0
    avg_time: int = 0
    max_time: float = 0
    errors: int = 0

    def add(self, duration: float, status_code: int) -> None:
        self.count += 1
        self.total_time += duration
        self.avg_time = round(self.total_time / self.count)
        self.max_time = max(self.max_time, duration)
        if status_code >= 400:
            self.errors += 1


class MetricsRecorder:
    def __init__(
        self,
        *,
        response_capacity: int = RESPONSE_BUFFER_SIZE,
        error_capacity: int = ERROR_BUFFER_SIZE,
        slow_query_capacity: int = SLOW_QUERY_BUFFER_SIZE,
        clock: Callable[[], int] = now_ms,
    ):
        self.clock = clock
        self.started_at = clock()
        self.responses: RingBuffer[ResponseTimeSample] = RingBuffer(response_capacity)
        self.errors: RingBuffer[ErrorEvent] = RingBuffer(error_capacity)
        self.slow_queries: RingBuffer[SlowQueryEvent] = RingBuffer(slow_query_capacity)
        self.endpoints: dict[str, EndpointAggregate] = {}
        self._lock = threading.Lock()

    # ---------- recording ----------

    def record_response(self, endpoint: str, duration: float, status_code: int) -> None:
        with self._lock:
            self.responses.push(
                ResponseTimeSample(
                    duration=duration,
                    timestamp=self.clock(),
                    endpoint=endpoint,
                    status_code=status_code,
                )
            )
            self.endpoints.setdefault(endpoint, EndpointAggregate()).add(duration, status_code)

    def record_error(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        with self._lock:
            self.errors.push(
                ErrorEvent(
                    message=message,
                    timestamp=self.clock(),
                    endpoint=endpoint,
                    status_code=status_code,
                )
            )

    def record_slow_query(self, query: str, duration_ms: float) -> None:
        with self._lock:
            self.slow_queries.push(
                SlowQueryEvent(query=query, duration=duration_ms, timestamp=self.clock())
            )

    def reset(self) -> None:
        with self._lock:
            self.responses.clear()
            self.errors.clear()
            self.slow_queries.clear()
            self.endpoints.clear()

    # ---------- reading ----------

    def _stream(self, name: str) -> RingBuffer:
        streams = {
            "responses": self.responses,
            "errors": self.errors,
            "slow_queries": self.slow_queries,
        }
        try:
            return streams[name]
        except KeyError:
            raise ValueError(f"Unknown metrics stream '{name}'") from None

    def _recent(self, stream: str, window_ms: int) -> list:
        cutoff = self.clock() - window_ms
        with self._lock:
            items = self._stream(stream).get_all()
        return [item for item in items if item.timestamp > cutoff]

    def windowed_count(self, stream: str, window_ms: int) -> int:
        return len(self._recent(stream, window_ms))

    def windowed_average(self, stream: str, window_ms: int) -> int:
        """Mean duration inside the window, 0 when the window is empty."""
        durations = [item.duration for item in self._recent(stream, window_ms)]
        if not durations:
            return 0
        return round(sum(durations) / len(durations))

    def response_percentiles(self) -> dict[str, float]:
        with self._lock:
            durations = [sample.duration for sample in self.responses.get_all()]
        return {
            "p50": percentile(durations, 50),
            "p95": percentile(durations, 95),
            "p99": percentile(durations, 99),
        }

    def error_rate(self, window_ms: int = FIVE_MINUTES_MS) -> float:
        """Percentage of requests in the window that ended with status >= 400."""
        recent = self._recent("responses", window_ms)
        if not recent:
            return 0
        failed = sum(1 for sample in recent if sample.status_code >= 400)
        return round(failed / len(recent) * 100, 2)

    def summary(self, window_ms: int = FIVE_MINUTES_MS) -> dict:
        return {
            "window": f"{window_ms // ONE_MINUTE_MS}m",
            "requests": self.windowed_count("responses", window_ms),
            "errors": self.windowed_count("errors", window_ms),
            "avgResponseTime": self.windowed_average("responses", window_ms),
        }

    def performance(self) -> dict:
        return {
            **self.response_percentiles(),
            "avgResponseTime": self.windowed_average("responses", FIVE_MINUTES_MS),
            "requestsPerMinute": self.windowed_count("responses", ONE_MINUTE_MS),
            "errorRate": self.error_rate(FIVE_MINUTES_MS),
            "slowQueries": self.windowed_count("slow_queries", FIVE_MINUTES_MS),
            "unit": "ms",
        }

    def endpoint_breakdown(self) -> dict[str, dict]:
        with self._lock:
            return {
                endpoint: asdict(aggregate)
                for endpoint, aggregate in sorted(self.endpoints.items())
            }

    def recent_errors(self, limit: int = 10) -> list[dict]:
        with self._lock:
            events = self.errors.get_all()[-limit:]
        return [asdict(event) for event in reversed(events)]

    def recent_slow_queries(self, limit: int = 10) -> list[dict]:
        with self._lock:
            events = self.slow_queries.get_all()[-limit:]
        return [asdict(event) for event in reversed(events)]
