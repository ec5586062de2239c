r"""Parameter validation utilities for the retry engine.

This module provides validation functions for retry parameters to ensure
they meet the required constraints before a retry run starts.
"""

from __future__ import annotations

__all__ = ["validate_circuit_params", "validate_retry_params", "validate_timeout"]

from aretry.exceptions import ConfigurationError


def validate_timeout(timeout: float | None, name: str = "timeout") -> None:
    """Validate a timeout parameter.

    Args:
        timeout: Maximum number of seconds. ``None`` disables the timeout.
        name: The parameter name used in the error message.

    Raises:
        ConfigurationError: If timeout is a numeric value <= 0.

    Example:
        ```pycon
        >>> from aretry.core.validation import validate_timeout
        >>> validate_timeout(10.0)
        >>> validate_timeout(None)
        >>> validate_timeout(0)
        Traceback (most recent call last):
        ...
        aretry.exceptions.ConfigurationError: timeout must be > 0, got 0

        ```
    """
    if timeout is not None and timeout <= 0:
        msg = f"{name} must be > 0, got {timeout}"
        raise ConfigurationError(msg)


def validate_retry_params(
    max_retries: int,
    base_delay: float = 0.0,
    timeout: float | None = None,
    total_timeout: float | None = None,
) -> None:
    """Validate retry parameters.

    Args:
        max_retries: Maximum number of retries. Must be >= 0. A value
            of 0 means exactly one attempt.
        base_delay: Base delay handed to the strategy. Must be >= 0.
        timeout: Per-attempt timeout. Must be > 0 if provided.
        total_timeout: Budget for the whole run. Must be > 0 if provided.

    Raises:
        ConfigurationError: If any parameter is out of range.

    Example:
        ```pycon
        >>> from aretry.core.validation import validate_retry_params
        >>> validate_retry_params(max_retries=3)
        >>> validate_retry_params(max_retries=0, base_delay=0.5, timeout=30.0)
        >>> validate_retry_params(max_retries=-1)
        Traceback (most recent call last):
        ...
        aretry.exceptions.ConfigurationError: max_retries must be >= 0, got -1

        ```
    """
    if isinstance(max_retries, bool) or not isinstance(max_retries, int):
        msg = f"max_retries must be an integer, got {max_retries!r}"
        raise ConfigurationError(msg)
    if max_retries < 0:
        msg = f"max_retries must be >= 0, got {max_retries}"
        raise ConfigurationError(msg)
    if base_delay < 0:
        msg = f"base_delay must be >= 0, got {base_delay}"
        raise ConfigurationError(msg)
    validate_timeout(timeout, "timeout")
    validate_timeout(total_timeout, "total_timeout")


def validate_circuit_params(failure_threshold: int, reset_timeout: float) -> None:
    """Validate circuit breaker parameters.

    Args:
        failure_threshold: Consecutive failures that open the circuit.
            Must be > 0.
        reset_timeout: Seconds the circuit stays open before a probe.
            Must be > 0.

    Raises:
        ConfigurationError: If a parameter is out of range.
    """
    if failure_threshold <= 0:
        msg = f"failure_threshold must be > 0, got {failure_threshold}"
        raise ConfigurationError(msg)
    if reset_timeout <= 0:
        msg = f"reset_timeout must be > 0, got {reset_timeout}"
        raise ConfigurationError(msg)
