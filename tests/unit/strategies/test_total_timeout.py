r"""Unit tests for TotalTimeoutStrategy."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from aretry.context import RetryContext
from aretry.exceptions import StrategyConfigError
from aretry.strategies import FixedDelayStrategy, TotalTimeoutStrategy


def test_total_timeout_within_budget() -> None:
    """Test that the inner strategy decides while budget remains."""
    with patch("aretry.strategies.total_timeout.time.time", return_value=1000.0):
        strategy = TotalTimeoutStrategy(FixedDelayStrategy(), total_timeout=60.0)
        assert strategy.should_retry(0, 3)
        assert not strategy.should_retry(3, 3)
        assert strategy.get_delay(0, 2.0) == 2.0
        assert strategy.elapsed() == 0.0
        assert strategy.remaining() == 60.0


def test_total_timeout_budget_exceeded() -> None:
    """Test that retries stop once the budget is used up."""
    with patch("aretry.strategies.total_timeout.time.time", return_value=1000.0):
        strategy = TotalTimeoutStrategy(FixedDelayStrategy(), total_timeout=10.0)
    with patch("aretry.strategies.total_timeout.time.time", return_value=1010.0):
        assert not strategy.should_retry(0, 3)
        assert strategy.get_delay(0, 2.0) == 0.0
        assert strategy.remaining() == 0.0


def test_total_timeout_shortens_delay_to_remaining_budget() -> None:
    """Test that a delay longer than the remaining budget is
    shortened."""
    with patch("aretry.strategies.total_timeout.time.time", return_value=1000.0):
        strategy = TotalTimeoutStrategy(FixedDelayStrategy(), total_timeout=10.0)
    with patch("aretry.strategies.total_timeout.time.time", return_value=1008.0):
        assert strategy.get_delay(0, 5.0) == pytest.approx(1.9)
        assert strategy.get_delay(0, 1.0) == 1.0


def test_total_timeout_start_binds_context_start_time() -> None:
    """Test that the budget is measured from the context start time."""
    strategy = TotalTimeoutStrategy(FixedDelayStrategy(), total_timeout=30.0)
    strategy.start(RetryContext(max_retries=3, start_time=500.0))
    with patch("aretry.strategies.total_timeout.time.time", return_value=520.0):
        assert strategy.elapsed() == 20.0
        assert strategy.should_retry(0, 3)
    with patch("aretry.strategies.total_timeout.time.time", return_value=531.0):
        assert not strategy.should_retry(0, 3)


def test_total_timeout_reset_start_time() -> None:
    """Test that reset_start_time restarts the budget."""
    strategy = TotalTimeoutStrategy(FixedDelayStrategy(), total_timeout=5.0)
    strategy.start(RetryContext(max_retries=3, start_time=0.0))
    with patch("aretry.strategies.total_timeout.time.time", return_value=100.0):
        assert not strategy.should_retry(0, 3)
        strategy.reset_start_time()
        assert strategy.should_retry(0, 3)


def test_total_timeout_invalid() -> None:
    """Test that a non-positive budget raises StrategyConfigError."""
    with pytest.raises(StrategyConfigError, match=r"total_timeout must be > 0"):
        TotalTimeoutStrategy(total_timeout=0)
