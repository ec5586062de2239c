r"""Base class for exception classification handlers."""

from __future__ import annotations

__all__ = ["BASE_HANDLER_PATTERNS", "BaseHandler", "ExceptionCheck"]

from abc import ABC, abstractmethod
from collections.abc import Callable

ExceptionCheck = Callable[[BaseException], bool]

# Patterns shared by every built-in handler
BASE_HANDLER_PATTERNS: tuple[str, ...] = (
    r"timeout",
    r"temporarily unavailable",
    r"server error",
    r"connection refused",
)


class BaseHandler(ABC):
    """Classification rule bundling retryable patterns and error types.

    A handler contributes case-insensitive regular expressions matched
    against error messages, error types matched with ``isinstance``, and
    optional checks for errors whose retryability depends on their
    content (e.g. an HTTP status code). Handlers gated on an optional
    dependency report it through ``is_applicable``.

    Subclasses define ``handler_patterns`` and ``exception_types``; the
    ``patterns`` property prepends the patterns shared by all built-in
    handlers.
    """

    handler_patterns: tuple[str, ...] = ()

    @property
    def patterns(self) -> tuple[str, ...]:
        """Ordered regular expressions of this handler."""
        return BASE_HANDLER_PATTERNS + tuple(self.handler_patterns)

    @property
    @abstractmethod
    def exception_types(self) -> tuple[type[BaseException], ...]:
        """Error types that are always retryable."""

    @property
    def exception_checks(self) -> tuple[ExceptionCheck, ...]:
        """Predicates for errors that are retryable depending on content."""
        return ()

    @abstractmethod
    def is_applicable(self) -> bool:
        """Whether the handler can be used in this environment."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
