r"""Decorrelated jitter strategy."""

from __future__ import annotations

__all__ = ["DecorrelatedJitterStrategy"]

import random

from aretry.exceptions import StrategyConfigError
from aretry.strategies.base import BaseRetryStrategy


class DecorrelatedJitterStrategy(BaseRetryStrategy):
    """Randomised exponential backoff with decorrelated jitter.

    The delay is drawn uniformly between ``base_delay * min_factor`` and
    ``base_delay * max_factor * 2 ** attempt`` (capped at ``max_delay``).
    Spreading the delays this way keeps many clients that failed together
    from retrying together.

    Args:
        max_delay: Optional maximum delay cap in seconds.
        min_factor: Lower bound multiplier of the base delay.
        max_factor: Upper bound multiplier of the base delay.
        seed: Optional seed for reproducible delays.

    Example:
        ```pycon
        >>> from aretry.strategies import DecorrelatedJitterStrategy
        >>> strategy = DecorrelatedJitterStrategy(seed=42)
        >>> 1.0 <= strategy.get_delay(0, 1.0) <= 3.0
        True

        ```
    """

    def __init__(
        self,
        max_delay: float | None = None,
        min_factor: float = 1.0,
        max_factor: float = 3.0,
        seed: int | None = None,
    ) -> None:
        if max_delay is not None and max_delay <= 0:
            msg = f"max_delay must be positive if specified, got {max_delay}"
            raise StrategyConfigError(msg)
        if min_factor < 0 or max_factor < min_factor:
            msg = (
                f"factors must satisfy 0 <= min_factor <= max_factor, "
                f"got min_factor={min_factor}, max_factor={max_factor}"
            )
            raise StrategyConfigError(msg)

        self.max_delay = max_delay
        self.min_factor = min_factor
        self.max_factor = max_factor
        self._rng = random.Random(seed)  # noqa: S311

    def get_delay(self, attempt: int, base_delay: float) -> float:
        low = base_delay * self.min_factor
        try:
            high = base_delay * self.max_factor * (2**attempt)
        except OverflowError:
            high = float("inf")
        if self.max_delay is not None:
            high = min(high, self.max_delay)
            low = min(low, high)
        if high == float("inf"):
            return max(0.0, low)
        return max(0.0, self._rng.uniform(low, high))
