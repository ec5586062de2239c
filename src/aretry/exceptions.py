r"""Exception hierarchy raised by the retry engine itself.

Errors raised by the retried operation are never wrapped: they travel
through ``RetryResult.error`` (or are re-raised by ``RetryExecutor.call``)
unchanged. The classes below only describe conditions produced by the
engine: invalid configuration, an open circuit, a cancelled run or an
attempt that exceeded its time budget.
"""

from __future__ import annotations

__all__ = [
    "AttemptTimeoutError",
    "CircuitOpenError",
    "ConfigurationError",
    "RetryCancelledError",
    "RetryError",
    "RetryExhaustedError",
    "StrategyConfigError",
]


class RetryError(Exception):
    """Base class for all errors raised by ``aretry``."""


class ConfigurationError(RetryError, ValueError):
    """Raised when a configuration value is invalid.

    Example:
        ```pycon
        >>> from aretry.exceptions import ConfigurationError
        >>> raise ConfigurationError("max_retries must be >= 0, got -1")
        Traceback (most recent call last):
            ...
        aretry.exceptions.ConfigurationError: max_retries must be >= 0, got -1

        ```
    """


class StrategyConfigError(ConfigurationError):
    """Raised when a retry strategy cannot be built from its
    configuration."""


class CircuitOpenError(RetryError):
    """Raised when a circuit breaker refuses to let an attempt through.

    Args:
        message: A descriptive error message.
        key: The identity of the breaker that refused the attempt.
        retry_after: Seconds until the breaker allows a probe, if known.
    """

    def __init__(self, message: str, key: str = "default", retry_after: float | None = None) -> None:
        super().__init__(message)
        self.key = key
        self.retry_after = retry_after


class RetryCancelledError(RetryError):
    """Raised (or returned inside a ``RetryResult``) when a run is
    cancelled through its ``CancellationToken``."""


class AttemptTimeoutError(RetryError, TimeoutError):
    """Raised when a single attempt runs longer than the per-attempt
    timeout.

    The message always contains ``timed out`` so the default
    classification rules treat it as transient.
    """

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Attempt timed out after {timeout:.2f}s")
        self.timeout = timeout


class RetryExhaustedError(RetryError):
    """Raised when the retry loop ends without any recorded error.

    This only happens when a strategy refuses the very first attempt.
    """
