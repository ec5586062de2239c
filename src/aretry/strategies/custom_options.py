r"""Strategy driven by caller-supplied callbacks and options."""

from __future__ import annotations

__all__ = ["CustomOptionsStrategy"]

from typing import TYPE_CHECKING, Any

from aretry.strategies.wrapper import WrapperStrategy

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from aretry.strategies.base import BaseRetryStrategy


class CustomOptionsStrategy(WrapperStrategy):
    """Strategy whose behavior is customised with callbacks.

    The delay callback receives ``(attempt, base_delay, options)`` and
    the continuation callback receives
    ``(attempt, max_attempts, last_error, options)``. Without callbacks
    the inner strategy decides.

    Args:
        inner_strategy: The wrapped strategy.
        options: Free-form options handed to the callbacks.

    Example:
        ```pycon
        >>> from aretry.strategies import CustomOptionsStrategy
        >>> strategy = CustomOptionsStrategy(options={"factor": 3}).with_delay_callback(
        ...     lambda attempt, base_delay, options: base_delay * options["factor"]
        ... )
        >>> strategy.get_delay(5, 1.0)
        3.0
        >>> strategy.get_option("factor")
        3

        ```
    """

    def __init__(
        self,
        inner_strategy: BaseRetryStrategy | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(inner_strategy)
        self.options: dict[str, Any] = dict(options or {})
        self.delay_callback: Callable[[int, float, dict[str, Any]], float] | None = None
        self.should_retry_callback: (
            Callable[[int, int, Exception | None, dict[str, Any]], bool] | None
        ) = None

    def with_delay_callback(
        self, callback: Callable[[int, float, dict[str, Any]], float]
    ) -> CustomOptionsStrategy:
        self.delay_callback = callback
        return self

    def with_should_retry_callback(
        self, callback: Callable[[int, int, Exception | None, dict[str, Any]], bool]
    ) -> CustomOptionsStrategy:
        self.should_retry_callback = callback
        return self

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def set_option(self, key: str, value: Any) -> CustomOptionsStrategy:
        self.options[key] = value
        return self

    def get_delay(self, attempt: int, base_delay: float) -> float:
        if self.delay_callback is not None:
            return max(0.0, float(self.delay_callback(attempt, base_delay, self.options)))
        return self.inner_strategy.get_delay(attempt, base_delay)

    def should_retry(
        self, attempt: int, max_attempts: int, last_error: Exception | None = None
    ) -> bool:
        if self.should_retry_callback is not None:
            return bool(
                self.should_retry_callback(attempt, max_attempts, last_error, self.options)
            )
        return self.inner_strategy.should_retry(attempt, max_attempts, last_error)
