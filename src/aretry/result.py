r"""Immutable outcome of a retry run."""

from __future__ import annotations

__all__ = ["RetryResult"]

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from aretry.dead_letter import DeadLetter

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from aretry.context import AttemptRecord


@dataclass(frozen=True)
class RetryResult:
    """Outcome of a retry run: a value or a terminal error, plus history.

    Handling methods never mutate the result; they return a new one.

    - ``then(fn)`` maps a success value. An error raised by ``fn`` turns
      the result into a failure. Failures pass through unchanged.
    - ``catch(fn)`` recovers a failure with ``fn(error)``. An error raised
      by ``fn`` becomes the new failure. Successes pass through.
    - ``finally_(fn)`` always calls ``fn()``. If it raises, the result
      becomes a failure with that error, even if it was a success.

    Example:
        ```pycon
        >>> from aretry.result import RetryResult
        >>> RetryResult(result=2).then(lambda value: value * 10).value()
        20
        >>> failed = RetryResult(error=ValueError("boom"))
        >>> failed.then(lambda value: value * 10).catch(lambda error: str(error)).value()
        'boom'

        ```
    """

    result: Any = None
    error: Exception | None = None
    exception_history: tuple[AttemptRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.exception_history, tuple):
            object.__setattr__(self, "exception_history", tuple(self.exception_history))

    def succeeded(self) -> bool:
        return self.error is None

    def failed(self) -> bool:
        return self.error is not None

    def then(self, fn: Callable[[Any], Any]) -> RetryResult:
        if self.error is not None:
            return self
        try:
            return RetryResult(result=fn(self.result), exception_history=self.exception_history)
        except Exception as exc:  # noqa: BLE001
            return RetryResult(error=exc, exception_history=self.exception_history)

    def catch(self, fn: Callable[[Exception], Any]) -> RetryResult:
        if self.error is None:
            return self
        try:
            return RetryResult(result=fn(self.error), exception_history=self.exception_history)
        except Exception as exc:  # noqa: BLE001
            return RetryResult(error=exc, exception_history=self.exception_history)

    def finally_(self, fn: Callable[[], Any]) -> RetryResult:
        try:
            fn()
        except Exception as exc:  # noqa: BLE001
            return RetryResult(error=exc, exception_history=self.exception_history)
        return self

    def value(self) -> Any:
        """Return the success value or raise the terminal error."""
        if self.error is not None:
            raise self.error
        return self.result

    def throw(self) -> Any:
        """Raise the terminal error if the run failed.

        Returns:
            The success value.
        """
        return self.value()

    def throw_first(self) -> Any:
        """Raise the first recorded error, else the terminal error.

        Returns:
            The success value if the run succeeded without any failed
            attempt.
        """
        if self.exception_history:
            raise self.exception_history[0].error
        return self.value()

    def to_dead_letter(
        self, operation: str = "", context: Mapping[str, Any] | None = None
    ) -> DeadLetter:
        """Build a dead letter from a failed result.

        Args:
            operation: Name of the failed operation.
            context: Arbitrary data stored with the dead letter.

        Returns:
            The dead letter.

        Raises:
            ValueError: If the result is a success.
        """
        if self.error is None:
            msg = "Cannot create a dead letter from a successful result"
            raise ValueError(msg)
        return DeadLetter.from_error(
            self.error,
            operation=operation,
            exception_history=self.exception_history,
            context=context,
        )


setattr(RetryResult, "finally", RetryResult.finally_)  # noqa: B010
