r"""Exception classification handlers and their registry."""

from __future__ import annotations

__all__ = [
    "DEFAULT_RETRYABLE_PATTERNS",
    "BaseHandler",
    "ExceptionHandlerManager",
    "HttpxHandler",
    "StdlibNetworkHandler",
    "is_retryable_status_error",
]

from aretry.handlers.base import BaseHandler
from aretry.handlers.httpx_handler import HttpxHandler, is_retryable_status_error
from aretry.handlers.manager import DEFAULT_RETRYABLE_PATTERNS, ExceptionHandlerManager
from aretry.handlers.stdlib import StdlibNetworkHandler
