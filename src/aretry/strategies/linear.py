r"""Linear backoff strategy."""

from __future__ import annotations

__all__ = ["LinearBackoffStrategy"]

from aretry.exceptions import StrategyConfigError
from aretry.strategies.base import BaseRetryStrategy


class LinearBackoffStrategy(BaseRetryStrategy):
    """Linear backoff strategy.

    Calculates delay as: base_delay * (attempt + 1), with optional
    max_delay cap.

    This strategy provides evenly spaced retry delays, which can be useful
    for services that recover quickly or when you want predictable timing.

    Args:
        max_delay: Optional maximum delay cap in seconds.

    Example:
        ```pycon
        >>> from aretry.strategies import LinearBackoffStrategy
        >>> strategy = LinearBackoffStrategy()
        >>> strategy.get_delay(0, 1.0)
        1.0
        >>> strategy.get_delay(2, 1.0)
        3.0
        >>> LinearBackoffStrategy(max_delay=5.0).get_delay(5, 2.0)  # Would be 12.0
        5.0

        ```
    """

    def __init__(self, max_delay: float | None = None) -> None:
        if max_delay is not None and max_delay <= 0:
            msg = f"max_delay must be positive if specified, got {max_delay}"
            raise StrategyConfigError(msg)
        self.max_delay = max_delay

    def get_delay(self, attempt: int, base_delay: float) -> float:
        """Calculate linear backoff delay.

        Args:
            attempt: The current attempt number (0-indexed).
            base_delay: The base delay in seconds.

        Returns:
            The calculated delay: base_delay * (attempt + 1), capped at
            max_delay if set.
        """
        delay = base_delay * (attempt + 1)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return max(0.0, delay)
