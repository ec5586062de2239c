r"""Strategy implemented entirely by callbacks."""

from __future__ import annotations

__all__ = ["CallbackRetryStrategy"]

import sys
from typing import TYPE_CHECKING, Any

from aretry.strategies.base import BaseRetryStrategy

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


def _default_delay(
    attempt: int,  # noqa: ARG001
    base_delay: float,
    max_attempts: int,  # noqa: ARG001
    last_error: Exception | None,  # noqa: ARG001
    options: dict[str, Any],  # noqa: ARG001
) -> float:
    return base_delay


class CallbackRetryStrategy(BaseRetryStrategy):
    """Strategy delegating delay and continuation to callbacks.

    The delay callback receives
    ``(attempt, base_delay, max_attempts, last_error, options)`` and the
    continuation callback receives
    ``(attempt, max_attempts, last_error, options)``. The strategy's own
    ``base_delay`` is passed to the delay callback, the executor's base
    delay is ignored. ``max_attempts`` and ``last_error`` are those seen
    by the most recent ``should_retry`` call.

    Args:
        delay_callback: Delay callback. Defaults to returning the base
            delay.
        should_retry_callback: Continuation callback. Defaults to
            ``attempt < max_attempts``.
        base_delay: Base delay handed to the delay callback. Negative
            values fall back to 1.0.
        options: Free-form options handed to the callbacks.

    Example:
        ```pycon
        >>> from aretry.strategies import CallbackRetryStrategy
        >>> strategy = CallbackRetryStrategy(
        ...     delay_callback=lambda attempt, base, max_attempts, error, options: base + attempt,
        ...     base_delay=0.5,
        ... )
        >>> strategy.get_delay(2, 10.0)
        2.5

        ```
    """

    def __init__(
        self,
        delay_callback: (
            Callable[[int, float, int, Exception | None, dict[str, Any]], float] | None
        ) = None,
        should_retry_callback: (
            Callable[[int, int, Exception | None, dict[str, Any]], bool] | None
        ) = None,
        base_delay: float = 1.0,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        self.delay_callback = delay_callback or _default_delay
        self.should_retry_callback = should_retry_callback
        self.base_delay = base_delay if base_delay >= 0 else 1.0
        self.options: dict[str, Any] = dict(options or {})
        self._last_error: Exception | None = None

    def get_delay(self, attempt: int, base_delay: float) -> float:  # noqa: ARG002
        delay = self.delay_callback(
            attempt,
            self.base_delay,
            self.options.get("max_attempts", sys.maxsize),
            self._last_error,
            self.options,
        )
        return max(0.0, float(delay))

    def should_retry(
        self, attempt: int, max_attempts: int, last_error: Exception | None = None
    ) -> bool:
        self._last_error = last_error
        self.options["max_attempts"] = max_attempts
        if self.should_retry_callback is None:
            return attempt < max_attempts
        return bool(self.should_retry_callback(attempt, max_attempts, last_error, self.options))
