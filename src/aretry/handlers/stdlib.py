r"""Handler for network errors raised by the standard library."""

from __future__ import annotations

__all__ = ["StdlibNetworkHandler"]

from aretry.handlers.base import BaseHandler


class StdlibNetworkHandler(BaseHandler):
    """Retry connection and timeout errors from the standard library.

    ``ConnectionError`` covers refused, reset and aborted connections,
    ``TimeoutError`` covers socket timeouts and per-attempt timeouts.

    Example:
        ```pycon
        >>> from aretry.handlers import StdlibNetworkHandler
        >>> handler = StdlibNetworkHandler()
        >>> handler.is_applicable()
        True
        >>> handler.exception_types
        (<class 'ConnectionError'>, <class 'TimeoutError'>)

        ```
    """

    handler_patterns = (r"connection reset", r"broken pipe", r"network is unreachable")

    @property
    def exception_types(self) -> tuple[type[BaseException], ...]:
        return (ConnectionError, TimeoutError)

    def is_applicable(self) -> bool:
        return True
