r"""Unit tests for RetryDecider."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from aretry.context import AttemptRecord
from aretry.exceptions import ConfigurationError
from aretry.retry import RetryDecider


class PaymentDeclinedError(Exception):
    pass


class GatewayError(Exception):
    pass


def test_decider_matches_exception_type() -> None:
    """Test that instances of a retryable type are retryable."""
    decider = RetryDecider(exception_types=[ConnectionError])
    assert decider.is_retryable(ConnectionResetError("reset"), 0, 3) == (
        True,
        "type ConnectionResetError",
    )


def test_decider_matches_pattern_case_insensitively() -> None:
    """Test that message patterns are searched case-insensitively."""
    decider = RetryDecider(patterns=[r"connection timed out"])
    retryable, reason = decider.is_retryable(RuntimeError("CONNECTION TIMED OUT"), 0, 3)
    assert retryable
    assert reason == "pattern 'connection timed out'"


def test_decider_pattern_is_searched_not_anchored() -> None:
    """Test that a pattern may match anywhere in the message."""
    decider = RetryDecider(patterns=[r"rate.?limit"])
    assert decider.is_retryable(RuntimeError("upstream said: Rate-Limit hit"), 0, 3)[0]


def test_decider_no_match() -> None:
    """Test that unmatched errors are terminal."""
    decider = RetryDecider(patterns=["timeout"], exception_types=[ConnectionError])
    assert decider.is_retryable(ValueError("Non-retryable error occurred"), 0, 3) == (
        False,
        "no matching type or pattern",
    )


def test_decider_exception_check() -> None:
    """Test content-dependent checks."""
    decider = RetryDecider(exception_checks=[lambda error: "503" in str(error)])
    assert decider.is_retryable(GatewayError("status 503"), 0, 3)[0]
    assert not decider.is_retryable(GatewayError("status 404"), 0, 3)[0]


def test_decider_follows_cause_chain() -> None:
    """Test that a retryable cause makes the error retryable."""
    decider = RetryDecider(exception_types=[ConnectionError])
    try:
        try:
            raise ConnectionRefusedError("refused")
        except ConnectionRefusedError as exc:
            raise GatewayError("request failed") from exc
    except GatewayError as exc:
        error = exc
    assert decider.is_retryable(error, 0, 3) == (True, "type ConnectionRefusedError")


def test_decider_follows_implicit_context() -> None:
    """Test that the implicit context is inspected too."""
    decider = RetryDecider(patterns=["temporarily unavailable"])
    try:
        try:
            raise OSError("Resource temporarily unavailable")
        except OSError:
            raise GatewayError("wrapper")  # noqa: B904
    except GatewayError as exc:
        error = exc
    assert decider.is_retryable(error, 0, 3)[0]


def test_decider_ignores_suppressed_context() -> None:
    """Test that a suppressed context is not inspected."""
    decider = RetryDecider(patterns=["temporarily unavailable"])
    try:
        try:
            raise OSError("Resource temporarily unavailable")
        except OSError:
            raise GatewayError("wrapper") from None
    except GatewayError as exc:
        error = exc
    assert not decider.is_retryable(error, 0, 3)[0]


def test_decider_predicate_can_veto() -> None:
    """Test that a false predicate makes a retryable error terminal."""
    decider = RetryDecider(exception_types=[ConnectionError], predicate=lambda e, info: False)
    assert decider.is_retryable(ConnectionError("refused"), 0, 3) == (
        False,
        "custom predicate rejected the error",
    )


def test_decider_predicate_cannot_promote() -> None:
    """Test that a true predicate leaves the type and pattern rules in
    charge."""
    decider = RetryDecider(patterns=["timeout"], predicate=lambda e, info: True)
    assert not decider.is_retryable(PaymentDeclinedError("declined"), 0, 3)[0]
    assert decider.is_retryable(PaymentDeclinedError("gateway timeout"), 0, 3)[0]


def test_decider_predicate_info() -> None:
    """Test the information handed to the predicate."""
    predicate = Mock(return_value=True)
    record = AttemptRecord(attempt=0, error=ValueError("x"), timestamp=1.0, was_retryable=True)
    error = ValueError("y")
    RetryDecider(predicate=predicate).is_retryable(error, 1, 4, [record])
    predicate.assert_called_once_with(
        error,
        {
            "attempt": 1,
            "max_retries": 4,
            "remaining_attempts": 3,
            "exception_history": [record],
        },
    )


def test_decider_invalid_pattern() -> None:
    """Test that an invalid pattern raises ConfigurationError."""
    with pytest.raises(ConfigurationError, match=r"Invalid retryable pattern"):
        RetryDecider(patterns=["[unclosed"])


def test_decider_invalid_exception_type() -> None:
    """Test that non-exception types raise ConfigurationError."""
    with pytest.raises(ConfigurationError, match=r"must be exception classes"):
        RetryDecider(exception_types=[str])
