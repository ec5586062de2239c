r"""Helpers to find the HTTP response carried by an error."""

from __future__ import annotations

__all__ = ["find_response", "response_header", "response_text"]

import logging
import sys
from typing import Any

from aretry.utils.chain import iter_exception_chain

logger: logging.Logger = logging.getLogger(__name__)

_RESPONSE_ATTRIBUTES = ("response", "http_response", "client_response")


def find_response(error: BaseException | None) -> Any | None:
    """Return the first response found on the error or its causes.

    ``httpx.HTTPStatusError`` exposes its response directly. Other
    errors are inspected for a ``response``, ``http_response`` or
    ``client_response`` attribute holding an object with a
    ``status_code``.

    Args:
        error: The error to inspect.

    Returns:
        The response object, or None.
    """
    if error is None:
        return None
    httpx = sys.modules.get("httpx")
    for link in iter_exception_chain(error):
        if httpx is not None and isinstance(link, httpx.HTTPStatusError):
            return link.response
        for name in _RESPONSE_ATTRIBUTES:
            candidate = getattr(link, name, None)
            if candidate is not None and hasattr(candidate, "status_code"):
                return candidate
    return None


def response_header(response: Any, name: str) -> str | None:
    """Return a header value, or None if absent or blank."""
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get(name)
    if value is None:
        # plain dicts are case-sensitive
        lowered = name.lower()
        value = next(
            (v for k, v in dict(headers).items() if str(k).lower() == lowered),
            None,
        )
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def response_text(response: Any) -> str | None:
    """Return the body of a response as text, or None if unavailable."""
    httpx = sys.modules.get("httpx")
    if httpx is not None and isinstance(response, httpx.Response):
        try:
            return response.text
        except httpx.ResponseNotRead:
            logger.debug("Response body was not read, skipping content inspection")
            return None
    for name in ("text", "content", "body"):
        value = getattr(response, name, None)
        if isinstance(value, str):
            return value
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
    return None
