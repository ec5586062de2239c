r"""Per-work-item retry settings."""

from __future__ import annotations

__all__ = ["RetryOverrides", "SupportsRetryOverrides"]

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from aretry.strategies.base import BaseRetryStrategy


@dataclass(frozen=True)
class RetryOverrides:
    """Retry settings that replace the executor's for one run.

    Fields left to None keep the executor's value. Extra patterns and
    exception types are added to the executor's.

    Example:
        ```pycon
        >>> from aretry.retry import RetryOverrides
        >>> overrides = RetryOverrides(max_retries=5, additional_patterns=("quota exceeded",))
        >>> overrides.max_retries
        5

        ```
    """

    max_retries: int | None = None
    base_delay: float | None = None
    strategy: BaseRetryStrategy | None = None
    timeout: float | None = None
    additional_patterns: tuple[str, ...] = ()
    additional_exceptions: tuple[type[BaseException], ...] = ()


@runtime_checkable
class SupportsRetryOverrides(Protocol):
    """Work item supplying its own retry settings."""

    def retry_overrides(self) -> RetryOverrides: ...

    def __call__(self) -> Any: ...
