r"""Per-run record of attempts, timing and metadata.

A ``RetryContext`` is created by the executor at the start of every run,
mutated only by that run, and kept afterwards for inspection as the
executor's ``last_context``.
"""

from __future__ import annotations

__all__ = ["AttemptRecord", "RetryContext"]

import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True)
class AttemptRecord:
    """One failed attempt of a run.

    Attributes:
        attempt: The attempt index (0-indexed).
        error: The error raised by the attempt.
        timestamp: Unix time at which the failure was recorded.
        was_retryable: Whether the error was classified as retryable.
        delay: The delay scheduled after the attempt, if retried.
        duration: How long the attempt ran, in seconds.
    """

    attempt: int
    error: Exception
    timestamp: float
    was_retryable: bool
    delay: float | None = None
    duration: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable view of the record."""
        return {
            "attempt": self.attempt,
            "error_class": type(self.error).__qualname__,
            "error_message": str(self.error),
            "timestamp": self.timestamp,
            "was_retryable": self.was_retryable,
            "delay": self.delay,
            "duration": self.duration,
        }


class RetryContext:
    """Mutable record of a single retry run.

    Args:
        max_retries: Maximum number of retries of the run.
        start_time: Unix start time. Defaults to now.
        operation_id: Unique id of the run. Defaults to ``retry_``
            followed by a random hex string.

    Example:
        ```pycon
        >>> from aretry.context import RetryContext
        >>> context = RetryContext(max_retries=3, operation_id="retry_demo")
        >>> context.total_attempts
        1
        >>> context.record_attempt(0, ValueError("boom"), was_retryable=True, delay=0.5, duration=0.1)
        >>> len(context.exception_history), context.total_delay
        (1, 0.5)
        >>> context.summary()["retryable_exceptions"]
        1

        ```
    """

    def __init__(
        self,
        max_retries: int,
        start_time: float | None = None,
        operation_id: str | None = None,
    ) -> None:
        self.max_retries = max_retries
        self.start_time = time.time() if start_time is None else start_time
        self.operation_id = operation_id or f"retry_{uuid.uuid4().hex}"
        self.total_attempts = 1
        self._history: list[AttemptRecord] = []
        self._metadata: dict[str, Any] = {}
        self._durations: list[float] = []
        self._frozen_at: float | None = None

    def record_attempt(
        self,
        attempt: int,
        error: Exception | None,
        was_retryable: bool = False,
        delay: float | None = None,
        duration: float | None = None,
    ) -> None:
        """Record the outcome of an attempt.

        Failed attempts are appended to the exception history. The
        duration of every attempt feeds the metrics.

        Args:
            attempt: The attempt index (0-indexed).
            error: The error raised by the attempt, None on success.
            was_retryable: Whether the error was classified as retryable.
            delay: The delay scheduled after the attempt.
            duration: How long the attempt ran, in seconds.
        """
        if error is not None:
            self._history.append(
                AttemptRecord(
                    attempt=attempt,
                    error=error,
                    timestamp=time.time(),
                    was_retryable=was_retryable,
                    delay=delay,
                    duration=duration,
                )
            )
        if duration is not None:
            self._durations.append(duration)

    def snapshot(self) -> RetryContext:
        """Return a copy of the context frozen at the current time.

        Later attempts of the run do not change the copy, and its
        elapsed time stops at the moment of the snapshot.
        """
        copy = RetryContext(
            self.max_retries, start_time=self.start_time, operation_id=self.operation_id
        )
        copy.total_attempts = self.total_attempts
        copy._history = list(self._history)
        copy._metadata = dict(self._metadata)
        copy._durations = list(self._durations)
        copy._frozen_at = self._frozen_at if self._frozen_at is not None else time.time()
        return copy

    def next_attempt(self) -> None:
        """Count the start of a retry."""
        self.total_attempts += 1

    def add_metadata(self, metadata: Mapping[str, Any]) -> None:
        self._metadata.update(metadata)

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    def get_metadata_value(self, key: str, default: Any = None) -> Any:
        return self._metadata.get(key, default)

    @property
    def exception_history(self) -> list[AttemptRecord]:
        """Failed attempts in order. The list is a copy."""
        return list(self._history)

    @property
    def total_delay(self) -> float:
        return sum(record.delay or 0.0 for record in self._history)

    def elapsed(self) -> float:
        """Seconds elapsed since the start of the run."""
        end = self._frozen_at if self._frozen_at is not None else time.time()
        return end - self.start_time

    @property
    def metrics(self) -> dict[str, float]:
        """Timing metrics of the run.

        Returns:
            A dictionary with ``total_duration``, ``total_delay``,
            ``avg_attempt_duration``, ``min_attempt_duration``,
            ``max_attempt_duration`` and ``total_elapsed_time``. The
            per-attempt values are 0.0 before any attempt finished.
        """
        durations = self._durations
        total = sum(durations)
        return {
            "total_duration": total,
            "total_delay": self.total_delay,
            "avg_attempt_duration": total / len(durations) if durations else 0.0,
            "min_attempt_duration": min(durations) if durations else 0.0,
            "max_attempt_duration": max(durations) if durations else 0.0,
            "total_elapsed_time": self.elapsed(),
        }

    def summary(self) -> dict[str, Any]:
        """Return a JSON-serialisable summary of the run."""
        return {
            "operation_id": self.operation_id,
            "total_attempts": self.total_attempts,
            "max_retries": self.max_retries,
            "total_exceptions": len(self._history),
            "retryable_exceptions": sum(1 for record in self._history if record.was_retryable),
            "metrics": self.metrics,
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(operation_id={self.operation_id!r}, "
            f"total_attempts={self.total_attempts}, max_retries={self.max_retries})"
        )
