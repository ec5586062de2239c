r"""aretry - Retry execution engine for operations that fail transiently.

This package runs an operation, classifies its failures as retryable or
terminal, waits between attempts according to a pluggable backoff
strategy, records the history of every attempt, and notifies listeners
of the retry lifecycle.

Key Features:
    - Sync and asyncio executors with per-attempt timeouts and cancellation
    - Backoff strategies: Exponential, Linear, Fixed, Fibonacci,
      Decorrelated jitter, and wrappers for time budgets, rate limits and
      HTTP response hints
    - Circuit breaker strategy with keyed, lock-guarded shared state
    - Error classification by type, message pattern and causal chain
    - Immutable results with fluent handling and dead-letter hand-off
    - Lifecycle events for logging, metrics and alerting

Example:
    ```pycon
    >>> from aretry import RetryExecutor
    >>> from aretry.strategies import FixedDelayStrategy
    >>> executor = RetryExecutor(max_retries=2, base_delay=0.0, timeout=None)
    >>> result = executor.with_strategy(FixedDelayStrategy()).run(lambda: "done")
    >>> result.succeeded(), result.value()
    (True, 'done')

    ```
"""

from __future__ import annotations

__all__ = [
    "AsyncRetryExecutor",
    "AttemptRecord",
    "AttemptTimeoutError",
    "CancellationToken",
    "CircuitOpenError",
    "ConfigurationError",
    "ExceptionHandlerManager",
    "RetryCancelledError",
    "RetryConfig",
    "RetryContext",
    "RetryError",
    "RetryExecutor",
    "RetryExhaustedError",
    "RetryOverrides",
    "RetryResult",
    "StrategyConfigError",
    "__version__",
]

from importlib.metadata import PackageNotFoundError, version

from aretry.config import RetryConfig
from aretry.context import AttemptRecord, RetryContext
from aretry.exceptions import (
    AttemptTimeoutError,
    CircuitOpenError,
    ConfigurationError,
    RetryCancelledError,
    RetryError,
    RetryExhaustedError,
    StrategyConfigError,
)
from aretry.handlers import ExceptionHandlerManager
from aretry.result import RetryResult
from aretry.retry import AsyncRetryExecutor, RetryExecutor, RetryOverrides
from aretry.utils.cancellation import CancellationToken

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
