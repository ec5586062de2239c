r"""Strategy honouring server-supplied retry hints on HTTP responses."""

from __future__ import annotations

__all__ = ["HttpResponseStrategy"]

import logging
from typing import TYPE_CHECKING, Any

from aretry.exceptions import StrategyConfigError
from aretry.strategies._response import find_response, response_header
from aretry.strategies.wrapper import WrapperStrategy
from aretry.utils.retry_after import parse_rate_limit_reset, parse_retry_after, parse_retry_in

if TYPE_CHECKING:
    from aretry.strategies.base import BaseRetryStrategy

logger: logging.Logger = logging.getLogger(__name__)


class HttpResponseStrategy(WrapperStrategy):
    """Use the HTTP response of the last error to pick delay and continuation.

    The delay is read from the ``Retry-After``, ``X-RateLimit-Reset`` and
    ``X-Retry-In`` headers, in that order. Without a usable header the
    inner strategy's delay is used. Either way the delay is capped at
    ``max_delay``.

    Retries are refused for 4xx responses, except 429 responses and
    responses carrying a ``Retry-After`` header, and accepted for 5xx
    responses. Errors without a response defer to the inner strategy.

    Args:
        inner_strategy: The wrapped strategy.
        max_delay: Maximum delay in seconds.

    Example:
        ```pycon
        >>> import httpx
        >>> from aretry.strategies import HttpResponseStrategy
        >>> request = httpx.Request("GET", "https://api.example.com")
        >>> response = httpx.Response(503, headers={"Retry-After": "7"}, request=request)
        >>> error = httpx.HTTPStatusError("unavailable", request=request, response=response)
        >>> strategy = HttpResponseStrategy()
        >>> strategy.should_retry(0, 3, error)
        True
        >>> strategy.get_delay(0, 1.0)
        7.0

        ```
    """

    def __init__(
        self, inner_strategy: BaseRetryStrategy | None = None, max_delay: float = 300.0
    ) -> None:
        if max_delay <= 0:
            msg = f"max_delay must be > 0, got {max_delay}"
            raise StrategyConfigError(msg)
        super().__init__(inner_strategy)
        self.max_delay = max_delay
        self._last_error: Exception | None = None

    def record_failure(self, error: Exception) -> None:
        self._last_error = error
        super().record_failure(error)

    def record_success(self) -> None:
        self._last_error = None
        super().record_success()

    def get_delay(self, attempt: int, base_delay: float) -> float:
        delay: float | None = None
        response = find_response(self._last_error)
        if response is not None:
            delay = self._header_delay(response)
        if delay is None:
            delay = self.inner_strategy.get_delay(attempt, base_delay)
        else:
            logger.debug(f"Using server-supplied retry delay of {delay:.2f}s")
        return max(0.0, min(delay, self.max_delay))

    def should_retry(
        self, attempt: int, max_attempts: int, last_error: Exception | None = None
    ) -> bool:
        if last_error is not None:
            self._last_error = last_error
        if not self.inner_strategy.should_retry(attempt, max_attempts, last_error):
            return False
        response = find_response(last_error)
        if response is None:
            return True
        status_code = int(response.status_code)
        if 400 <= status_code < 500:
            return status_code == 429 or response_header(response, "Retry-After") is not None
        return status_code >= 500

    @staticmethod
    def _header_delay(response: Any) -> float | None:
        delay = parse_retry_after(response_header(response, "Retry-After"))
        if delay is None:
            delay = parse_rate_limit_reset(response_header(response, "X-RateLimit-Reset"))
        if delay is None:
            delay = parse_retry_in(response_header(response, "X-Retry-In"))
        return delay
