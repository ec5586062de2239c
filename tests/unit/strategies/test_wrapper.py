r"""Unit tests for WrapperStrategy."""

from __future__ import annotations

from unittest.mock import Mock

from aretry.context import RetryContext
from aretry.strategies import ExponentialBackoffStrategy, WrapperStrategy
from aretry.strategies.base import BaseRetryStrategy


def test_wrapper_default_inner_strategy() -> None:
    """Test that the inner strategy defaults to exponential backoff."""
    strategy = WrapperStrategy()
    assert isinstance(strategy.inner_strategy, ExponentialBackoffStrategy)
    assert strategy.get_delay(2, 1.0) == 4.0


def test_wrapper_forwards_everything() -> None:
    """Test that the wrapper forwards delays, decisions and hooks."""
    inner = Mock(spec=BaseRetryStrategy)
    inner.get_delay.return_value = 1.25
    inner.should_retry.return_value = False
    strategy = WrapperStrategy(inner)
    context = RetryContext(max_retries=2)
    error = ValueError("boom")

    assert strategy.get_delay(1, 0.5) == 1.25
    assert not strategy.should_retry(1, 2, error)
    strategy.start(context)
    strategy.before_attempt()
    strategy.record_failure(error)
    strategy.record_success()
    strategy.abort_attempt()

    inner.get_delay.assert_called_once_with(1, 0.5)
    inner.should_retry.assert_called_once_with(1, 2, error)
    inner.start.assert_called_once_with(context)
    inner.before_attempt.assert_called_once_with()
    inner.record_failure.assert_called_once_with(error)
    inner.record_success.assert_called_once_with()
    inner.abort_attempt.assert_called_once_with()
