r"""Helpers to walk the causal chain of an exception."""

from __future__ import annotations

__all__ = ["iter_exception_chain"]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


def iter_exception_chain(error: BaseException) -> Iterator[BaseException]:
    """Iterate over an exception and its causes.

    The explicit cause (``raise ... from ...``) is followed first, then
    the implicit context unless it was suppressed. Each exception is
    yielded once, even if the chain contains a cycle.

    Args:
        error: The outermost exception.

    Yields:
        The exception itself, then each link of its causal chain.

    Example:
        ```pycon
        >>> from aretry.utils.chain import iter_exception_chain
        >>> try:
        ...     try:
        ...         raise KeyError("inner")
        ...     except KeyError as exc:
        ...         raise RuntimeError("outer") from exc
        ... except RuntimeError as exc:
        ...     [type(e).__name__ for e in iter_exception_chain(exc)]
        ...
        ['RuntimeError', 'KeyError']

        ```
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None
