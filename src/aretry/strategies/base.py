r"""Abstract base class for retry strategies."""

from __future__ import annotations

__all__ = ["BaseRetryStrategy"]

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aretry.context import RetryContext


class BaseRetryStrategy(ABC):
    """Abstract base class for retry strategies.

    A retry strategy decides how long to wait before the next attempt
    and whether another attempt should be made at all. ``get_delay``
    must not have side effects unless the strategy explicitly reads
    shared state, such as a circuit breaker.

    The executor also calls a few lifecycle hooks which are no-ops by
    default: ``start`` when a run begins, ``before_attempt`` before the
    operation is invoked, ``record_success`` / ``record_failure``
    after each attempt, and ``abort_attempt`` when an attempt ends
    without an outcome (cancelled or interrupted).
    """

    @abstractmethod
    def get_delay(self, attempt: int, base_delay: float) -> float:
        """Calculate the delay before the next attempt.

        Args:
            attempt: The attempt that just failed (0-indexed). For
                example, attempt=0 is the initial call, attempt=1 is
                the first retry, etc.
            base_delay: The configured base delay in seconds.

        Returns:
            The delay in seconds before the next attempt.
        """

    def should_retry(
        self,
        attempt: int,
        max_attempts: int,
        last_error: Exception | None = None,  # noqa: ARG002
    ) -> bool:
        """Determine whether another attempt should be made.

        Args:
            attempt: The attempt that just failed (0-indexed).
            max_attempts: The maximum number of retries.
            last_error: The error raised by the failed attempt.

        Returns:
            ``True`` if another attempt is allowed.
        """
        return attempt < max_attempts

    def start(self, context: RetryContext) -> None:
        """Hook called once at the start of every run."""

    def before_attempt(self) -> None:
        """Hook called before every invocation of the operation.

        Raises:
            CircuitOpenError: If the strategy refuses the attempt.
        """

    def record_success(self) -> None:
        """Hook called after a successful attempt."""

    def record_failure(self, error: Exception) -> None:
        """Hook called after a failed attempt."""

    def abort_attempt(self) -> None:
        """Hook called when an attempt was cancelled or interrupted
        before it produced a value or an error."""

    def __repr__(self) -> str:
        params = ", ".join(
            f"{key.lstrip('_')}={value!r}"
            for key, value in vars(self).items()
            if not key.startswith("__") and not callable(value) and key != "_rng"
        )
        return f"{type(self).__name__}({params})"
