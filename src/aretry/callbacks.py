r"""Lifecycle events and listeners for observability.

The executors notify listeners at three points of a run:

- on_retrying: before waiting for the next attempt
- on_success: when an attempt succeeded
- on_failure: when the run ended with a terminal error

For a run that retried and then succeeded, listeners receive
``on_retrying`` once per retry followed by ``on_success``. For a failed
run they receive ``on_retrying`` once per retry followed by exactly one
``on_failure``.

Example:
    ```pycon
    >>> from aretry import RetryExecutor
    >>> from aretry.callbacks import CallbackListener, RetryingEvent
    >>> def log_retry(event: RetryingEvent) -> None:
    ...     print(f"Retry {event.attempt}/{event.max_retries} in {event.delay}s")
    ...
    >>> executor = RetryExecutor(listeners=[CallbackListener(on_retrying=log_retry)])

    ```
"""

from __future__ import annotations

__all__ = [
    "CallbackListener",
    "FailedEvent",
    "LoggingListener",
    "RetryListener",
    "RetryingEvent",
    "SucceededEvent",
]

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from aretry.utils.structured_logging import log_structured

if TYPE_CHECKING:
    from collections.abc import Callable

    from aretry.context import AttemptRecord, RetryContext

logger: logging.Logger = logging.getLogger(__name__)


def _context_summary(context: RetryContext | None) -> dict[str, Any]:
    if context is None:
        return {}
    summary = context.summary()
    return {
        "operation_id": summary["operation_id"],
        "metrics": summary["metrics"],
        "metadata": summary["metadata"],
    }


@dataclass
class RetryingEvent:
    """Event emitted before the wait that precedes a retry.

    Attributes:
        attempt: The number of the upcoming retry (1-indexed). The first
            retry is 1.
        max_retries: Maximum number of retries of the run.
        delay: The delay in seconds before the retry.
        error: The error that triggered the retry.
        timestamp: Unix time of the event.
        context: Snapshot of the run context taken when the event
            was built.
    """

    attempt: int
    max_retries: int
    delay: float
    error: Exception
    timestamp: float = field(default_factory=time.time)
    context: RetryContext | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "event": "retrying",
            "attempt": self.attempt,
            "max_retries": self.max_retries,
            "delay": self.delay,
            "error_class": type(self.error).__qualname__,
            "error_message": str(self.error),
            "timestamp": self.timestamp,
            **_context_summary(self.context),
        }


@dataclass
class SucceededEvent:
    """Event emitted when an attempt succeeded.

    Attributes:
        attempt: The attempt that succeeded (0-indexed).
        result: The value returned by the operation.
        total_time: Seconds elapsed since the start of the run.
        timestamp: Unix time of the event.
        context: Snapshot of the run context taken when the event
            was built.
    """

    attempt: int
    result: Any
    total_time: float
    timestamp: float = field(default_factory=time.time)
    context: RetryContext | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "event": "succeeded",
            "attempt": self.attempt,
            "total_time": self.total_time,
            "result_type": type(self.result).__qualname__,
            "timestamp": self.timestamp,
            **_context_summary(self.context),
        }


@dataclass
class FailedEvent:
    """Event emitted once when a run ended with a terminal error.

    Attributes:
        attempt: The last attempt (0-indexed).
        error: The terminal error.
        exception_history: Every failed attempt of the run.
        timestamp: Unix time of the event.
        context: Snapshot of the run context taken when the event
            was built.
    """

    attempt: int
    error: Exception
    exception_history: list[AttemptRecord] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)
    context: RetryContext | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "event": "failed",
            "attempt": self.attempt,
            "error_class": type(self.error).__qualname__,
            "error_message": str(self.error),
            "exception_history": [record.to_dict() for record in self.exception_history],
            "timestamp": self.timestamp,
            **_context_summary(self.context),
        }


@runtime_checkable
class RetryListener(Protocol):
    """Observer of retry lifecycle events.

    A listener may implement any subset of ``on_retrying``,
    ``on_success`` and ``on_failure``; missing methods are skipped.
    """

    def on_retrying(self, event: RetryingEvent) -> None: ...

    def on_success(self, event: SucceededEvent) -> None: ...

    def on_failure(self, event: FailedEvent) -> None: ...


class CallbackListener:
    """Listener forwarding events to plain callables.

    Args:
        on_retrying: Called with each ``RetryingEvent``.
        on_success: Called with the ``SucceededEvent``.
        on_failure: Called with the ``FailedEvent``.
    """

    def __init__(
        self,
        on_retrying: Callable[[RetryingEvent], None] | None = None,
        on_success: Callable[[SucceededEvent], None] | None = None,
        on_failure: Callable[[FailedEvent], None] | None = None,
    ) -> None:
        self._on_retrying = on_retrying
        self._on_success = on_success
        self._on_failure = on_failure

    def on_retrying(self, event: RetryingEvent) -> None:
        if self._on_retrying is not None:
            self._on_retrying(event)

    def on_success(self, event: SucceededEvent) -> None:
        if self._on_success is not None:
            self._on_success(event)

    def on_failure(self, event: FailedEvent) -> None:
        if self._on_failure is not None:
            self._on_failure(event)


class LoggingListener:
    """Listener writing every event to a logger with structured fields.

    Args:
        log: The logger to use. Defaults to this module's logger.
        retry_level: Level of retrying events.
        success_level: Level of success events.
        failure_level: Level of failure events.
    """

    def __init__(
        self,
        log: logging.Logger | None = None,
        retry_level: int = logging.WARNING,
        success_level: int = logging.DEBUG,
        failure_level: int = logging.ERROR,
    ) -> None:
        self.logger = log or logger
        self.retry_level = retry_level
        self.success_level = success_level
        self.failure_level = failure_level

    def on_retrying(self, event: RetryingEvent) -> None:
        log_structured(
            self.logger,
            self.retry_level,
            f"Retrying operation (retry {event.attempt}/{event.max_retries}) "
            f"in {event.delay:.2f}s after {type(event.error).__name__}: {event.error}",
            retry_event=event.summary(),
        )

    def on_success(self, event: SucceededEvent) -> None:
        log_structured(
            self.logger,
            self.success_level,
            f"Operation succeeded on attempt {event.attempt + 1} "
            f"after {event.total_time:.2f}s",
            retry_event=event.summary(),
        )

    def on_failure(self, event: FailedEvent) -> None:
        log_structured(
            self.logger,
            self.failure_level,
            f"Operation failed after {event.attempt + 1} attempt(s): "
            f"{type(event.error).__name__}: {event.error}",
            retry_event=event.summary(),
        )
