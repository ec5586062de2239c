r"""Strategy bounding a whole run by a time budget."""

from __future__ import annotations

__all__ = ["TotalTimeoutStrategy"]

import logging
import time
from typing import TYPE_CHECKING

from aretry.exceptions import StrategyConfigError
from aretry.strategies.wrapper import WrapperStrategy

if TYPE_CHECKING:
    from aretry.context import RetryContext
    from aretry.strategies.base import BaseRetryStrategy

logger: logging.Logger = logging.getLogger(__name__)

# Margin kept free when a delay is shortened to fit the remaining budget
DELAY_SAFETY_MARGIN = 0.1


class TotalTimeoutStrategy(WrapperStrategy):
    """Stop retrying once a run has used up its time budget.

    The elapsed time is measured from the start time of the run's
    context, bound by the executor through ``start``. A strategy used
    outside an executor measures from its construction or the last
    ``reset_start_time`` call.

    Args:
        inner_strategy: The wrapped strategy.
        total_timeout: Budget in seconds for the whole run.

    Example:
        ```pycon
        >>> from aretry.strategies import FixedDelayStrategy, TotalTimeoutStrategy
        >>> strategy = TotalTimeoutStrategy(FixedDelayStrategy(), total_timeout=60.0)
        >>> strategy.get_delay(0, 1.0)
        1.0
        >>> strategy.should_retry(0, 3)
        True

        ```
    """

    def __init__(
        self, inner_strategy: BaseRetryStrategy | None = None, total_timeout: float = 300.0
    ) -> None:
        if total_timeout <= 0:
            msg = f"total_timeout must be > 0, got {total_timeout}"
            raise StrategyConfigError(msg)
        super().__init__(inner_strategy)
        self.total_timeout = total_timeout
        self._start_time = time.time()

    def start(self, context: RetryContext) -> None:
        self._start_time = context.start_time
        super().start(context)

    def reset_start_time(self) -> None:
        """Restart the budget from now."""
        self._start_time = time.time()

    def elapsed(self) -> float:
        """Seconds elapsed since the start of the budget."""
        return time.time() - self._start_time

    def remaining(self) -> float:
        """Seconds left in the budget, never negative."""
        return max(0.0, self.total_timeout - self.elapsed())

    def get_delay(self, attempt: int, base_delay: float) -> float:
        requested = self.inner_strategy.get_delay(attempt, base_delay)
        remaining = self.total_timeout - self.elapsed()
        if remaining <= 0:
            return 0.0
        if remaining < requested:
            return max(0.0, remaining - DELAY_SAFETY_MARGIN)
        return requested

    def should_retry(
        self, attempt: int, max_attempts: int, last_error: Exception | None = None
    ) -> bool:
        elapsed = self.elapsed()
        if elapsed >= self.total_timeout:
            logger.debug(
                f"Total timeout of {self.total_timeout:.2f}s exceeded "
                f"after {elapsed:.2f}s, not retrying"
            )
            return False
        return self.inner_strategy.should_retry(attempt, max_attempts, last_error)
