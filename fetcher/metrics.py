"""Metrics collection for the fetch client."""

from dataclasses import dataclass, field
from threading import Lock
from typing import ClassVar

from fetcher.errors import FetchErrorClass


@dataclass
class FetchMetrics:
    """Metrics for dispatch operations.

    Singleton class that tracks dispatch counts, transport attempts,
    retries, outcomes and decode downgrades.
    """

    dispatches_total: int = 0
    attempts_total: int = 0
    retries_total: int = 0
    successes_total: int = 0
    responses_by_status: dict[int, int] = field(default_factory=dict)
    failures_total: dict[str, int] = field(default_factory=dict)
    decode_downgrades_total: int = 0
    duration_ms_total: float = 0.0

    _instance: ClassVar["FetchMetrics | None"] = None
    _lock: ClassVar[Lock] = Lock()

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        with cls._lock:
            cls._instance = None

    def record_dispatch(self) -> None:
        """Record the start of a dispatch."""
        self.dispatches_total += 1

    def record_attempt(self) -> None:
        """Record one transport invocation."""
        self.attempts_total += 1

    def record_retry(self) -> None:
        """Record a scheduled retry."""
        self.retries_total += 1

    def record_response(self, status: int) -> None:
        """Record a response returned by the transport.

        Args:
            status: HTTP status code.
        """
        self.responses_by_status[status] = self.responses_by_status.get(status, 0) + 1

    def record_success(self, duration_ms: float) -> None:
        """Record a resolved dispatch.

        Args:
            duration_ms: Total dispatch duration in milliseconds.
        """
        self.successes_total += 1
        self.duration_ms_total += duration_ms

    def record_failure(self, error_class: FetchErrorClass, duration_ms: float) -> None:
        """Record a rejected dispatch.

        Args:
            error_class: Classification of the failure.
            duration_ms: Total dispatch duration in milliseconds.
        """
        key = error_class.value
        self.failures_total[key] = self.failures_total.get(key, 0) + 1
        self.duration_ms_total += duration_ms

    def record_decode_downgrade(self) -> None:
        """Record an auto-detected body that fell back to bytes."""
        self.decode_downgrades_total += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "dispatches_total": self.dispatches_total,
            "attempts_total": self.attempts_total,
            "retries_total": self.retries_total,
            "successes_total": self.successes_total,
            "responses_by_status": dict(self.responses_by_status),
            "failures_total": dict(self.failures_total),
            "decode_downgrades_total": self.decode_downgrades_total,
            "duration_ms_total": self.duration_ms_total,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Average duration of settled dispatches in milliseconds."""
        settled = self.successes_total + sum(self.failures_total.values())
        if settled == 0:
            return 0.0
        return self.duration_ms_total / settled
