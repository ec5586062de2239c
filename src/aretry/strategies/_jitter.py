r"""Jitter helpers shared by the backoff strategies."""

from __future__ import annotations

__all__ = ["apply_jitter", "validate_jitter_percent"]

import random

from aretry.exceptions import StrategyConfigError


def validate_jitter_percent(jitter_percent: float) -> None:
    """Validate a jitter percentage.

    Args:
        jitter_percent: The relative jitter, e.g. 0.2 for +/-20%.

    Raises:
        StrategyConfigError: If the value is outside ``[0, 1]``.
    """
    if not 0.0 <= jitter_percent <= 1.0:
        msg = f"jitter_percent must be in [0, 1], got {jitter_percent}"
        raise StrategyConfigError(msg)


def apply_jitter(delay: float, jitter_percent: float, rng: random.Random) -> float:
    """Apply multiplicative jitter to a delay.

    The delay is scaled by a factor drawn uniformly from
    ``[1 - jitter_percent, 1 + jitter_percent]``.

    Args:
        delay: The delay in seconds.
        jitter_percent: The relative jitter.
        rng: The random generator, seeded by the caller for
            reproducibility.

    Returns:
        The jittered delay, never negative.

    Example:
        ```pycon
        >>> import random
        >>> from aretry.strategies._jitter import apply_jitter
        >>> 8.0 <= apply_jitter(10.0, 0.2, random.Random(0)) <= 12.0
        True

        ```
    """
    factor = rng.uniform(1.0 - jitter_percent, 1.0 + jitter_percent)
    return max(0.0, delay * factor)
