r"""Registry merging the classification rules of several handlers."""

from __future__ import annotations

__all__ = ["DEFAULT_HANDLERS", "DEFAULT_RETRYABLE_PATTERNS", "ExceptionHandlerManager"]

import logging
import threading
from typing import TYPE_CHECKING

from aretry.handlers.httpx_handler import HttpxHandler
from aretry.handlers.stdlib import StdlibNetworkHandler

if TYPE_CHECKING:
    from aretry.handlers.base import BaseHandler, ExceptionCheck

logger: logging.Logger = logging.getLogger(__name__)

# Message patterns that are retryable unless explicitly disabled
DEFAULT_RETRYABLE_PATTERNS: tuple[str, ...] = (
    r"rate.?limit",
    r"timeout",
    r"server.?error",
    r"connection refused",
    r"connection timed out",
    r"temporarily unavailable",
)

# Built-in handlers registered by ``register_default_handlers``
DEFAULT_HANDLERS: tuple[type[BaseHandler], ...] = (StdlibNetworkHandler, HttpxHandler)


class ExceptionHandlerManager:
    """Merge the patterns and error types of registered handlers.

    Registration is expected to happen before the manager is shared
    between threads; reads of the merged rules are cached and safe for
    concurrent use afterwards.

    Args:
        handlers: Handlers to register on construction.
        include_defaults: Whether ``DEFAULT_RETRYABLE_PATTERNS`` are part
            of the merged patterns.
        register_defaults: Whether the applicable built-in handlers are
            registered on construction.

    Example:
        ```pycon
        >>> from aretry.handlers import ExceptionHandlerManager
        >>> manager = ExceptionHandlerManager()
        >>> "connection timed out" in manager.get_all_patterns()
        True
        >>> ConnectionError in manager.get_all_exceptions()
        True
        >>> ExceptionHandlerManager(include_defaults=False, register_defaults=False).get_all_patterns()
        []

        ```
    """

    def __init__(
        self,
        handlers: tuple[BaseHandler, ...] | list[BaseHandler] = (),
        *,
        include_defaults: bool = True,
        register_defaults: bool = True,
    ) -> None:
        self.include_defaults = include_defaults
        self._handlers: list[BaseHandler] = []
        self._lock = threading.Lock()
        self._patterns: list[str] | None = None
        self._exceptions: list[type[BaseException]] | None = None
        self._checks: list[ExceptionCheck] | None = None
        if register_defaults:
            self.register_default_handlers()
        for handler in handlers:
            self.register_handler(handler)

    def register_default_handlers(self) -> ExceptionHandlerManager:
        """Register every applicable built-in handler once.

        Calling this method again has no effect.

        Returns:
            The manager itself.
        """
        for handler_cls in DEFAULT_HANDLERS:
            if not self.has_handler(handler_cls):
                self.register_handler(handler_cls())
        return self

    def register_handler(self, handler: BaseHandler) -> ExceptionHandlerManager:
        """Register a handler.

        Handlers that are not applicable in this environment and
        instances that are already registered are skipped.

        Args:
            handler: The handler to register.

        Returns:
            The manager itself.
        """
        if not handler.is_applicable():
            logger.debug(f"Skipping handler {handler!r}: not applicable")
            return self
        with self._lock:
            if any(existing is handler for existing in self._handlers):
                return self
            self._handlers.append(handler)
            self._invalidate()
        return self

    def get_handlers(self) -> list[BaseHandler]:
        with self._lock:
            return list(self._handlers)

    def has_handler(self, handler_cls: type[BaseHandler]) -> bool:
        with self._lock:
            return any(isinstance(handler, handler_cls) for handler in self._handlers)

    def remove_handler(self, handler_cls: type[BaseHandler]) -> ExceptionHandlerManager:
        """Remove every handler that is an instance of ``handler_cls``."""
        with self._lock:
            self._handlers = [h for h in self._handlers if not isinstance(h, handler_cls)]
            self._invalidate()
        return self

    def clear_handlers(self) -> ExceptionHandlerManager:
        with self._lock:
            self._handlers.clear()
            self._invalidate()
        return self

    def get_all_patterns(self) -> list[str]:
        """Return the merged message patterns.

        Returns:
            The default patterns (unless disabled) followed by the
            patterns of each handler in registration order, without
            duplicates.
        """
        with self._lock:
            if self._patterns is None:
                sources = list(DEFAULT_RETRYABLE_PATTERNS) if self.include_defaults else []
                for handler in self._handlers:
                    sources.extend(handler.patterns)
                self._patterns = list(dict.fromkeys(sources))
            return list(self._patterns)

    def get_all_exceptions(self) -> list[type[BaseException]]:
        """Return the merged retryable error types, in registration order."""
        with self._lock:
            if self._exceptions is None:
                merged: dict[type[BaseException], None] = {}
                for handler in self._handlers:
                    merged.update(dict.fromkeys(handler.exception_types))
                self._exceptions = list(merged)
            return list(self._exceptions)

    def get_all_exception_checks(self) -> list[ExceptionCheck]:
        """Return the merged content-dependent checks."""
        with self._lock:
            if self._checks is None:
                merged: dict[ExceptionCheck, None] = {}
                for handler in self._handlers:
                    merged.update(dict.fromkeys(handler.exception_checks))
                self._checks = list(merged)
            return list(self._checks)

    def _invalidate(self) -> None:
        self._patterns = None
        self._exceptions = None
        self._checks = None
