r"""Fibonacci backoff strategy."""

from __future__ import annotations

__all__ = ["FibonacciBackoffStrategy"]

import random

from aretry.exceptions import StrategyConfigError
from aretry.strategies._jitter import apply_jitter
from aretry.strategies.base import BaseRetryStrategy

# fib(70) is already ~1.9e14, far beyond any useful delay multiplier
MAX_FIBONACCI_INDEX = 70


class FibonacciBackoffStrategy(BaseRetryStrategy):
    """Fibonacci backoff strategy.

    Calculates delay as: base_delay * fibonacci(attempt + 1), with
    optional max_delay cap.

    This strategy provides a middle ground between linear and exponential
    backoff. The Fibonacci sequence (1, 1, 2, 3, 5, 8, 13, ...) grows more
    gradually than powers of two. The index is capped at 70 so very large
    attempt numbers stay cheap and finite.

    Args:
        max_delay: Optional maximum delay cap in seconds.
        with_jitter: Whether to randomise the delay by +/-20%.
        seed: Optional seed for the jitter generator.

    Example:
        ```pycon
        >>> from aretry.strategies import FibonacciBackoffStrategy
        >>> strategy = FibonacciBackoffStrategy()
        >>> [strategy.get_delay(attempt, 1.0) for attempt in range(6)]
        [1.0, 1.0, 2.0, 3.0, 5.0, 8.0]
        >>> FibonacciBackoffStrategy(max_delay=10.0).get_delay(10, 1.0)  # fib(11) = 89
        10.0

        ```
    """

    def __init__(
        self, max_delay: float | None = None, with_jitter: bool = False, seed: int | None = None
    ) -> None:
        if max_delay is not None and max_delay <= 0:
            msg = f"max_delay must be positive if specified, got {max_delay}"
            raise StrategyConfigError(msg)

        self.max_delay = max_delay
        self.with_jitter = with_jitter
        self._rng = random.Random(seed)  # noqa: S311

    @staticmethod
    def fibonacci(n: int) -> int:
        """Calculate the nth Fibonacci number (1-indexed).

        Args:
            n: The position in the Fibonacci sequence (1-indexed). Values
                above 70 are treated as 70.

        Returns:
            The nth Fibonacci number.
        """
        if n <= 0:
            return 0
        if n <= 2:
            return 1

        a, b = 1, 1
        for _ in range(min(n, MAX_FIBONACCI_INDEX) - 2):
            a, b = b, a + b
        return b

    def get_delay(self, attempt: int, base_delay: float) -> float:
        """Calculate Fibonacci backoff delay.

        Args:
            attempt: The current attempt number (0-indexed).
            base_delay: The base delay in seconds.

        Returns:
            The calculated delay: base_delay * fibonacci(attempt + 1),
            capped at max_delay if set.
        """
        delay = base_delay * self.fibonacci(attempt + 1)
        if self.with_jitter:
            delay = apply_jitter(delay, 0.2, self._rng)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return max(0.0, delay)
