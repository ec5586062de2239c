r"""Handler for transient errors raised by ``httpx``.

``httpx`` is imported lazily, so this module imports cleanly when it is
not installed and the handler then reports itself as not applicable.
"""

from __future__ import annotations

__all__ = ["RETRYABLE_STATUS_CODES", "HttpxHandler", "is_retryable_status_error"]

import importlib.util
import sys

from aretry.handlers.base import BaseHandler, ExceptionCheck

# Too Many Requests, plus every 5xx status
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429})


def is_retryable_status_error(error: BaseException) -> bool:
    """Check whether an error is an HTTP status error worth retrying.

    Args:
        error: The error to check.

    Returns:
        ``True`` for ``httpx.HTTPStatusError`` with a 429 or 5xx status.

    Example:
        ```pycon
        >>> import httpx
        >>> from aretry.handlers.httpx_handler import is_retryable_status_error
        >>> request = httpx.Request("GET", "https://api.example.com")
        >>> def status_error(code):
        ...     response = httpx.Response(code, request=request)
        ...     return httpx.HTTPStatusError("error", request=request, response=response)
        ...
        >>> is_retryable_status_error(status_error(503))
        True
        >>> is_retryable_status_error(status_error(404))
        False

        ```
    """
    # an HTTPStatusError can only exist once httpx was imported
    httpx = sys.modules.get("httpx")
    if httpx is None or not isinstance(error, httpx.HTTPStatusError):
        return False
    status_code = error.response.status_code
    return status_code in RETRYABLE_STATUS_CODES or 500 <= status_code < 600


class HttpxHandler(BaseHandler):
    """Retry connection, timeout and protocol failures of ``httpx``.

    ``httpx.HTTPStatusError`` is only retried for 429 and 5xx responses,
    through ``is_retryable_status_error``.
    """

    handler_patterns = (
        r"ssl",
        r"certificate has expired",
        r"could not resolve host",
        r"name or service not known",
        r"connection reset",
        r"operation timed out",
    )

    @property
    def exception_types(self) -> tuple[type[BaseException], ...]:
        import httpx

        return (
            httpx.ConnectError,
            httpx.TimeoutException,
            httpx.RemoteProtocolError,
            httpx.TooManyRedirects,
        )

    @property
    def exception_checks(self) -> tuple[ExceptionCheck, ...]:
        return (is_retryable_status_error,)

    def is_applicable(self) -> bool:
        return importlib.util.find_spec("httpx") is not None
