r"""Exponential backoff strategy."""

from __future__ import annotations

__all__ = ["ExponentialBackoffStrategy"]

import random

from aretry.exceptions import StrategyConfigError
from aretry.strategies._jitter import apply_jitter, validate_jitter_percent
from aretry.strategies.base import BaseRetryStrategy


class ExponentialBackoffStrategy(BaseRetryStrategy):
    """Exponential backoff strategy.

    Calculates delay as: base_delay * (multiplier ** attempt), with
    optional jitter and max_delay cap.

    This is the default strategy and works well for most scenarios where
    you want progressively longer delays between retries. Jitter is
    multiplicative (the delay is scaled by a factor in
    ``[1 - jitter_percent, 1 + jitter_percent]``) and applied before the
    cap, so a capped delay never exceeds ``max_delay``.

    Args:
        multiplier: Growth factor between consecutive delays. Must be >= 1.
        max_delay: Optional maximum delay cap in seconds.
        with_jitter: Whether to randomise the delay.
        jitter_percent: Relative jitter, 0.2 means +/-20%.
        seed: Optional seed for the jitter generator.

    Example:
        ```pycon
        >>> from aretry.strategies import ExponentialBackoffStrategy
        >>> strategy = ExponentialBackoffStrategy()
        >>> strategy.get_delay(0, 0.5)
        0.5
        >>> strategy.get_delay(1, 0.5)
        1.0
        >>> strategy.get_delay(3, 0.5)
        4.0
        >>> strategy = ExponentialBackoffStrategy(max_delay=5.0)
        >>> strategy.get_delay(10, 1.0)  # Would be 1024.0, but capped
        5.0

        ```
    """

    def __init__(
        self,
        multiplier: float = 2.0,
        max_delay: float | None = None,
        with_jitter: bool = False,
        jitter_percent: float = 0.2,
        seed: int | None = None,
    ) -> None:
        if multiplier < 1:
            msg = f"multiplier must be >= 1, got {multiplier}"
            raise StrategyConfigError(msg)
        if max_delay is not None and max_delay <= 0:
            msg = f"max_delay must be positive if specified, got {max_delay}"
            raise StrategyConfigError(msg)
        validate_jitter_percent(jitter_percent)

        self.multiplier = multiplier
        self.max_delay = max_delay
        self.with_jitter = with_jitter
        self.jitter_percent = jitter_percent
        self._rng = random.Random(seed)  # noqa: S311

    def get_delay(self, attempt: int, base_delay: float) -> float:
        """Calculate exponential backoff delay.

        Args:
            attempt: The current attempt number (0-indexed).
            base_delay: The base delay in seconds.

        Returns:
            The calculated delay: base_delay * (multiplier ** attempt),
            jittered if enabled and capped at max_delay if set.
        """
        try:
            delay = base_delay * (self.multiplier**attempt)
        except OverflowError:
            delay = float("inf") if base_delay > 0 else 0.0
        if self.with_jitter:
            delay = apply_jitter(delay, self.jitter_percent, self._rng)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return max(0.0, delay)
