r"""Fixed delay strategy."""

from __future__ import annotations

__all__ = ["FixedDelayStrategy"]

import random

from aretry.strategies._jitter import apply_jitter, validate_jitter_percent
from aretry.strategies.base import BaseRetryStrategy


class FixedDelayStrategy(BaseRetryStrategy):
    """Constant/fixed delay strategy.

    Returns the base delay for every retry, regardless of the attempt
    number. Useful for tests (with a base delay of 0) or when the exact
    recovery time of a service is known.

    Args:
        with_jitter: Whether to randomise the delay.
        jitter_percent: Relative jitter, 0.2 means +/-20%.
        seed: Optional seed for the jitter generator.

    Example:
        ```pycon
        >>> from aretry.strategies import FixedDelayStrategy
        >>> strategy = FixedDelayStrategy()
        >>> strategy.get_delay(0, 2.5)
        2.5
        >>> strategy.get_delay(10, 2.5)
        2.5

        ```
    """

    def __init__(
        self, with_jitter: bool = False, jitter_percent: float = 0.2, seed: int | None = None
    ) -> None:
        validate_jitter_percent(jitter_percent)
        self.with_jitter = with_jitter
        self.jitter_percent = jitter_percent
        self._rng = random.Random(seed)  # noqa: S311

    def get_delay(self, attempt: int, base_delay: float) -> float:  # noqa: ARG002
        """Return the fixed delay.

        Args:
            attempt: The current attempt number (0-indexed, unused).
            base_delay: The base delay in seconds.

        Returns:
            The base delay, jittered if enabled.
        """
        if self.with_jitter:
            return apply_jitter(base_delay, self.jitter_percent, self._rng)
        return max(0.0, base_delay)
