r"""Base class for strategies that decorate another strategy."""

from __future__ import annotations

__all__ = ["WrapperStrategy"]

from typing import TYPE_CHECKING

from aretry.strategies.base import BaseRetryStrategy
from aretry.strategies.exponential import ExponentialBackoffStrategy

if TYPE_CHECKING:
    from aretry.context import RetryContext


class WrapperStrategy(BaseRetryStrategy):
    """Strategy that forwards everything to an inner strategy.

    Subclasses override the parts they change. Lifecycle hooks are
    always forwarded, so stacked wrappers all observe the run.

    Args:
        inner_strategy: The wrapped strategy. Defaults to
            ``ExponentialBackoffStrategy()``.
    """

    def __init__(self, inner_strategy: BaseRetryStrategy | None = None) -> None:
        self.inner_strategy = (
            inner_strategy if inner_strategy is not None else ExponentialBackoffStrategy()
        )

    def get_delay(self, attempt: int, base_delay: float) -> float:
        return self.inner_strategy.get_delay(attempt, base_delay)

    def should_retry(
        self, attempt: int, max_attempts: int, last_error: Exception | None = None
    ) -> bool:
        return self.inner_strategy.should_retry(attempt, max_attempts, last_error)

    def start(self, context: RetryContext) -> None:
        self.inner_strategy.start(context)

    def before_attempt(self) -> None:
        self.inner_strategy.before_attempt()

    def record_success(self) -> None:
        self.inner_strategy.record_success()

    def record_failure(self, error: Exception) -> None:
        self.inner_strategy.record_failure(error)

    def abort_attempt(self) -> None:
        self.inner_strategy.abort_attempt()
