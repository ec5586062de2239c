r"""Retry decision logic for classifying errors as retryable or terminal.

This module provides the RetryDecider class that encapsulates the logic
for deciding whether an error raised by an operation should be retried,
based on error types, message patterns and a custom predicate.
"""

from __future__ import annotations

__all__ = ["RetryDecider", "RetryPredicate"]

import logging
import re
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from aretry.exceptions import ConfigurationError
from aretry.utils.chain import iter_exception_chain

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from aretry.context import AttemptRecord
    from aretry.handlers.base import ExceptionCheck

logger: logging.Logger = logging.getLogger(__name__)

RetryPredicate = Callable[[Exception, Mapping[str, Any]], bool]


class RetryDecider:
    """Decides whether a failed attempt should be retried.

    The custom predicate, when set, is consulted first and can only
    veto: a false answer makes the error terminal, a true answer lets
    the type and pattern rules decide. The rules are then applied to
    the error and to every link of its causal chain. A link is
    retryable if it is an instance of one of the exception types,
    passes one of the exception checks, or its message matches one of
    the patterns (case-insensitive search).

    Args:
        patterns: Regular expressions matched against error messages.
        exception_types: Error types that are retryable.
        exception_checks: Predicates for content-dependent errors.
        predicate: Optional custom predicate receiving the error and a
            mapping with ``attempt``, ``max_retries``,
            ``remaining_attempts`` and ``exception_history``.

    Raises:
        ConfigurationError: If a pattern is not a valid regular
            expression or an exception type is not an exception class.

    Example:
        ```pycon
        >>> from aretry.retry import RetryDecider
        >>> decider = RetryDecider(patterns=["connection timed out"], exception_types=[KeyError])
        >>> decider.is_retryable(RuntimeError("Connection timed out"), 0, 3)
        (True, "pattern 'connection timed out'")
        >>> decider.is_retryable(ValueError("bad input"), 0, 3)
        (False, 'no matching type or pattern')

        ```
    """

    def __init__(
        self,
        patterns: Iterable[str] = (),
        exception_types: Iterable[type[BaseException]] = (),
        exception_checks: Iterable[ExceptionCheck] = (),
        predicate: RetryPredicate | None = None,
    ) -> None:
        self.patterns = tuple(dict.fromkeys(patterns))
        self.exception_types = tuple(dict.fromkeys(exception_types))
        self.exception_checks = tuple(exception_checks)
        self.predicate = predicate

        for exc_type in self.exception_types:
            if not (isinstance(exc_type, type) and issubclass(exc_type, BaseException)):
                msg = f"Retryable exception types must be exception classes, got {exc_type!r}"
                raise ConfigurationError(msg)
        self._compiled: list[re.Pattern[str]] = []
        for pattern in self.patterns:
            try:
                self._compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as exc:
                msg = f"Invalid retryable pattern {pattern!r}: {exc}"
                raise ConfigurationError(msg) from exc

    def is_retryable(
        self,
        error: Exception,
        attempt: int,
        max_retries: int,
        exception_history: Sequence[AttemptRecord] = (),
    ) -> tuple[bool, str]:
        """Classify an error.

        Args:
            error: The error raised by the attempt.
            attempt: The attempt that failed (0-indexed).
            max_retries: Maximum number of retries.
            exception_history: Failed attempts recorded so far.

        Returns:
            Tuple of (is_retryable, reason).
        """
        if self.predicate is not None:
            info = {
                "attempt": attempt,
                "max_retries": max_retries,
                "remaining_attempts": max(0, max_retries - attempt),
                "exception_history": list(exception_history),
            }
            if not self.predicate(error, info):
                return (False, "custom predicate rejected the error")

        for link in iter_exception_chain(error):
            if self.exception_types and isinstance(link, self.exception_types):
                return (True, f"type {type(link).__name__}")
            if any(check(link) for check in self.exception_checks):
                return (True, f"check on {type(link).__name__}")
            message = str(link)
            for pattern in self._compiled:
                if pattern.search(message):
                    return (True, f"pattern {pattern.pattern!r}")
        return (False, "no matching type or pattern")
