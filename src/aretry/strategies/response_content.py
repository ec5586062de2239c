r"""Strategy inspecting response bodies for transient failure signals."""

from __future__ import annotations

__all__ = ["DEFAULT_ERROR_CODE_PATHS", "ResponseContentStrategy"]

import json
import logging
import re
from typing import TYPE_CHECKING, Any

from aretry.exceptions import StrategyConfigError
from aretry.strategies._response import find_response, response_text
from aretry.strategies.wrapper import WrapperStrategy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from aretry.strategies.base import BaseRetryStrategy

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_ERROR_CODE_PATHS = ("error.code", "error_code", "code", "status")


class ResponseContentStrategy(WrapperStrategy):
    r"""Retry when the body of the failed response signals a transient error.

    Some APIs report temporary failures inside the response body, even
    with a 200 status. The strategy finds the response attached to the
    last error and accepts a retry when one of the following holds, in
    this order:

    - the custom ``content_checker(response)`` returns ``True`` (when a
      checker is set, it alone decides)
    - the body matches one of ``retryable_content_patterns``
    - the JSON body holds one of ``retryable_error_codes`` at one of
      ``error_code_paths`` (dotted paths, list indices allowed)

    Otherwise, or when no response is attached, the inner strategy
    decides. Delays always come from the inner strategy.

    Args:
        inner_strategy: The wrapped strategy.
        retryable_content_patterns: Regular expressions searched in the
            body, case-insensitively.
        retryable_error_codes: Error codes that mark a retryable body.
        error_code_paths: Dotted JSON paths holding the error code.
        content_checker: Optional callable receiving the response.

    Example:
        ```pycon
        >>> from aretry.strategies import ResponseContentStrategy
        >>> strategy = ResponseContentStrategy(
        ...     retryable_content_patterns=[r"try again later"],
        ...     retryable_error_codes=["RATE_LIMITED"],
        ... )
        >>> strategy.is_content_retryable('{"error": {"code": "RATE_LIMITED"}}')
        True
        >>> strategy.is_content_retryable("Please try again later")
        True
        >>> strategy.is_content_retryable("ok")
        False

        ```
    """

    def __init__(
        self,
        inner_strategy: BaseRetryStrategy | None = None,
        retryable_content_patterns: Iterable[str] = (),
        retryable_error_codes: Iterable[Any] = (),
        error_code_paths: Iterable[str] = DEFAULT_ERROR_CODE_PATHS,
        content_checker: Callable[[Any], bool] | None = None,
    ) -> None:
        super().__init__(inner_strategy)
        self.retryable_content_patterns: list[str] = []
        self._compiled: list[re.Pattern[str]] = []
        self.retryable_error_codes: list[Any] = list(retryable_error_codes)
        self.error_code_paths: list[str] = list(error_code_paths)
        self.content_checker = content_checker
        self.with_content_patterns(retryable_content_patterns)

    def with_content_patterns(self, patterns: Iterable[str]) -> ResponseContentStrategy:
        """Add retryable content patterns.

        Raises:
            StrategyConfigError: If a pattern is not a valid regular
                expression.
        """
        for pattern in patterns:
            try:
                self._compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as exc:
                msg = f"Invalid content pattern {pattern!r}: {exc}"
                raise StrategyConfigError(msg) from exc
            self.retryable_content_patterns.append(pattern)
        return self

    def with_error_codes(self, error_codes: Iterable[Any]) -> ResponseContentStrategy:
        """Add retryable error codes."""
        self.retryable_error_codes.extend(error_codes)
        return self

    def with_error_code_paths(self, paths: Iterable[str]) -> ResponseContentStrategy:
        """Replace the JSON paths searched for error codes."""
        self.error_code_paths = list(paths)
        return self

    def with_content_checker(self, checker: Callable[[Any], bool]) -> ResponseContentStrategy:
        """Set the custom content checker."""
        self.content_checker = checker
        return self

    def should_retry(
        self, attempt: int, max_attempts: int, last_error: Exception | None = None
    ) -> bool:
        if attempt >= max_attempts:
            return False
        response = find_response(last_error)
        if response is not None and self._is_response_retryable(response):
            logger.debug("Response content indicates a transient failure")
            return True
        return self.inner_strategy.should_retry(attempt, max_attempts, last_error)

    def _is_response_retryable(self, response: Any) -> bool:
        if self.content_checker is not None:
            return bool(self.content_checker(response))
        content = response_text(response)
        if not content:
            return False
        return self.is_content_retryable(content)

    def is_content_retryable(self, content: str) -> bool:
        """Check a response body against the patterns and error codes.

        Args:
            content: The response body.

        Returns:
            ``True`` if the body signals a retryable failure.
        """
        if any(pattern.search(content) for pattern in self._compiled):
            return True
        if not self.retryable_error_codes:
            return False
        try:
            payload = json.loads(content)
        except ValueError:
            return False
        for path in self.error_code_paths:
            code = _get_nested_value(payload, path)
            if code is not None and code in self.retryable_error_codes:
                return True
        return False


def _get_nested_value(payload: Any, path: str) -> Any:
    current = payload
    for key in path.split("."):
        if isinstance(current, dict):
            if key not in current:
                return None
            current = current[key]
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
    return current
