r"""Unit tests for HttpResponseStrategy."""

from __future__ import annotations

from unittest.mock import Mock, patch

import httpx
import pytest

from aretry.exceptions import StrategyConfigError
from aretry.strategies import FixedDelayStrategy, HttpResponseStrategy

REQUEST = httpx.Request("GET", "https://api.example.com/items")


def status_error(
    status_code: int, headers: dict[str, str] | None = None
) -> httpx.HTTPStatusError:
    response = httpx.Response(status_code, headers=headers, request=REQUEST)
    return httpx.HTTPStatusError("error", request=REQUEST, response=response)


######################################
#     Tests for should_retry         #
######################################


@pytest.mark.parametrize("status_code", [500, 502, 503, 504])
def test_http_response_retries_server_errors(status_code: int) -> None:
    """Test that 5xx responses are retried."""
    assert HttpResponseStrategy().should_retry(0, 3, status_error(status_code))


def test_http_response_retries_too_many_requests() -> None:
    """Test that 429 responses are retried."""
    assert HttpResponseStrategy().should_retry(0, 3, status_error(429))


@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 422])
def test_http_response_refuses_client_errors(status_code: int) -> None:
    """Test that 4xx responses are not retried."""
    assert not HttpResponseStrategy().should_retry(0, 3, status_error(status_code))


def test_http_response_retries_client_error_with_retry_after() -> None:
    """Test that a 4xx response carrying Retry-After is retried."""
    error = status_error(403, {"Retry-After": "3"})
    assert HttpResponseStrategy().should_retry(0, 3, error)


def test_http_response_without_response_defers_to_inner() -> None:
    """Test that errors without a response use the inner decision."""
    strategy = HttpResponseStrategy(FixedDelayStrategy())
    assert strategy.should_retry(0, 3, ConnectionError("refused"))
    assert not strategy.should_retry(3, 3, ConnectionError("refused"))


def test_http_response_respects_inner_refusal() -> None:
    """Test that a 5xx response is not retried once attempts are
    exhausted."""
    assert not HttpResponseStrategy().should_retry(3, 3, status_error(503))


def test_http_response_custom_error_with_response_attribute() -> None:
    """Test that responses attached to other errors are inspected."""

    class ClientError(Exception):
        pass

    error = ClientError("failed")
    error.response = Mock(status_code=404, headers={})
    assert not HttpResponseStrategy().should_retry(0, 3, error)


######################################
#     Tests for get_delay            #
######################################


def test_http_response_delay_from_retry_after() -> None:
    """Test that Retry-After seconds become the delay."""
    strategy = HttpResponseStrategy(FixedDelayStrategy())
    strategy.record_failure(status_error(503, {"Retry-After": "12"}))
    assert strategy.get_delay(0, 1.0) == 12.0


def test_http_response_delay_from_retry_after_date() -> None:
    """Test that a Retry-After HTTP date becomes the delay."""
    strategy = HttpResponseStrategy(FixedDelayStrategy())
    strategy.record_failure(status_error(503, {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}))
    # a date in the past means no wait
    assert strategy.get_delay(0, 1.0) == 0.0


def test_http_response_delay_from_rate_limit_reset() -> None:
    """Test that X-RateLimit-Reset is used without Retry-After."""
    strategy = HttpResponseStrategy(FixedDelayStrategy())
    strategy.record_failure(status_error(429, {"X-RateLimit-Reset": "1030"}))
    with patch("aretry.utils.retry_after.time.time", return_value=1000.0):
        assert strategy.get_delay(0, 1.0) == 30.0


def test_http_response_delay_from_retry_in() -> None:
    """Test that X-Retry-In is used as the last header."""
    strategy = HttpResponseStrategy(FixedDelayStrategy())
    strategy.record_failure(status_error(503, {"X-Retry-In": "4.5"}))
    assert strategy.get_delay(0, 1.0) == 4.5


def test_http_response_delay_header_priority() -> None:
    """Test that Retry-After wins over the other headers."""
    strategy = HttpResponseStrategy(FixedDelayStrategy())
    strategy.record_failure(status_error(503, {"Retry-After": "2", "X-Retry-In": "9"}))
    assert strategy.get_delay(0, 1.0) == 2.0


def test_http_response_delay_falls_back_to_inner() -> None:
    """Test that the inner delay is used without a usable header."""
    strategy = HttpResponseStrategy(FixedDelayStrategy())
    strategy.record_failure(status_error(503, {"Retry-After": "soon"}))
    assert strategy.get_delay(0, 1.5) == 1.5


def test_http_response_delay_is_capped() -> None:
    """Test that header delays are capped at max_delay."""
    strategy = HttpResponseStrategy(FixedDelayStrategy(), max_delay=60.0)
    strategy.record_failure(status_error(503, {"Retry-After": "3600"}))
    assert strategy.get_delay(0, 1.0) == 60.0


def test_http_response_success_forgets_last_error() -> None:
    """Test that a success clears the remembered response."""
    strategy = HttpResponseStrategy(FixedDelayStrategy())
    strategy.record_failure(status_error(503, {"Retry-After": "20"}))
    strategy.record_success()
    assert strategy.get_delay(0, 1.0) == 1.0


def test_http_response_invalid_max_delay() -> None:
    """Test that a non-positive max_delay raises StrategyConfigError."""
    with pytest.raises(StrategyConfigError, match=r"max_delay must be > 0"):
        HttpResponseStrategy(max_delay=0)
