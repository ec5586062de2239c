r"""Parsing utilities for server-supplied retry hints.

This module provides functions for parsing the ``Retry-After`` header
(RFC 7231), the ``X-RateLimit-Reset`` header (unix timestamp) and the
``X-Retry-In`` header (seconds) from HTTP responses.
"""

from __future__ import annotations

__all__ = ["parse_rate_limit_reset", "parse_retry_after", "parse_retry_in"]

import logging
import time
from contextlib import suppress
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

logger: logging.Logger = logging.getLogger(__name__)


def parse_retry_after(retry_after_header: str | None) -> float | None:
    """Parse the Retry-After header value from an HTTP response.

    The Retry-After header can be specified in two formats according to RFC 7231:
    1. An integer representing the number of seconds to wait (e.g., "120")
    2. An HTTP-date in RFC 5322 format (e.g., "Wed, 21 Oct 2015 07:28:00 GMT")

    Args:
        retry_after_header: The value of the Retry-After header as a string,
            or None if the header is not present in the response.

    Returns:
        The number of seconds to wait before retrying, or None if the
        header is absent or cannot be parsed. Negative values (dates in
        the past) are clamped to 0.0.

    Example:
        ```pycon
        >>> from aretry.utils.retry_after import parse_retry_after
        >>> parse_retry_after("120")
        120.0
        >>> parse_retry_after(None) is None
        True
        >>> parse_retry_after("invalid") is None
        True

        ```
    """
    if retry_after_header is None:
        return None

    with suppress(ValueError):
        return max(0.0, float(retry_after_header))

    try:
        retry_date: datetime = parsedate_to_datetime(retry_after_header)
        now = datetime.now(timezone.utc)
        return max(0.0, (retry_date - now).total_seconds())
    except (ValueError, TypeError, OverflowError):
        logger.debug(f"Failed to parse Retry-After header: {retry_after_header!r}")
        return None


def parse_rate_limit_reset(reset_header: str | None, now: float | None = None) -> float | None:
    """Parse an ``X-RateLimit-Reset`` header holding a unix timestamp.

    Args:
        reset_header: The header value, or None if absent.
        now: The current unix time. Defaults to ``time.time()``.

    Returns:
        The seconds until the reset, clamped to 0.0, or None if the
        header is absent or invalid.

    Example:
        ```pycon
        >>> from aretry.utils.retry_after import parse_rate_limit_reset
        >>> parse_rate_limit_reset("1030", now=1000.0)
        30.0
        >>> parse_rate_limit_reset("900", now=1000.0)
        0.0

        ```
    """
    if reset_header is None:
        return None
    try:
        reset_at = float(reset_header)
    except ValueError:
        logger.debug(f"Failed to parse X-RateLimit-Reset header: {reset_header!r}")
        return None
    current = time.time() if now is None else now
    return max(0.0, reset_at - current)


def parse_retry_in(retry_in_header: str | None) -> float | None:
    """Parse an ``X-Retry-In`` header holding a number of seconds.

    Args:
        retry_in_header: The header value, or None if absent.

    Returns:
        The number of seconds, or None if absent, invalid or negative.
    """
    if retry_in_header is None:
        return None
    try:
        seconds = float(retry_in_header)
    except ValueError:
        logger.debug(f"Failed to parse X-Retry-In header: {retry_in_header!r}")
        return None
    return seconds if seconds >= 0 else None
