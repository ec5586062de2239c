r"""Unit tests for DecorrelatedJitterStrategy."""

from __future__ import annotations

import pytest

from aretry.exceptions import StrategyConfigError
from aretry.strategies import DecorrelatedJitterStrategy


def test_decorrelated_jitter_range() -> None:
    """Test that delays stay between the lower and upper bound."""
    strategy = DecorrelatedJitterStrategy(seed=42)
    for attempt in range(5):
        high = 3.0 * 2**attempt
        for _ in range(20):
            assert 1.0 <= strategy.get_delay(attempt, 1.0) <= high


def test_decorrelated_jitter_max_delay() -> None:
    """Test that delays never exceed max_delay."""
    strategy = DecorrelatedJitterStrategy(max_delay=2.0, seed=1)
    for attempt in range(10):
        assert strategy.get_delay(attempt, 1.0) <= 2.0


def test_decorrelated_jitter_max_delay_below_lower_bound() -> None:
    """Test that the lower bound follows a cap smaller than itself."""
    strategy = DecorrelatedJitterStrategy(max_delay=0.5, seed=1)
    assert strategy.get_delay(0, 1.0) == 0.5


def test_decorrelated_jitter_seed_is_reproducible() -> None:
    """Test that the same seed produces the same delays."""
    first = DecorrelatedJitterStrategy(seed=5)
    second = DecorrelatedJitterStrategy(seed=5)
    assert [first.get_delay(i, 1.0) for i in range(5)] == [
        second.get_delay(i, 1.0) for i in range(5)
    ]


def test_decorrelated_jitter_huge_attempt() -> None:
    """Test that an overflowing upper bound falls back to the lower
    bound."""
    assert DecorrelatedJitterStrategy().get_delay(5000, 1.0) == 1.0


def test_decorrelated_jitter_invalid_factors() -> None:
    """Test that inconsistent factors raise StrategyConfigError."""
    with pytest.raises(StrategyConfigError, match=r"factors must satisfy"):
        DecorrelatedJitterStrategy(min_factor=4.0, max_factor=3.0)
    with pytest.raises(StrategyConfigError, match=r"factors must satisfy"):
        DecorrelatedJitterStrategy(min_factor=-1.0)


def test_decorrelated_jitter_invalid_max_delay() -> None:
    """Test that non-positive max_delay raises StrategyConfigError."""
    with pytest.raises(StrategyConfigError, match=r"max_delay must be positive"):
        DecorrelatedJitterStrategy(max_delay=0.0)
