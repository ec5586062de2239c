r"""Registry mapping stable kebab-case aliases to strategy classes.

Aliases are derived from class names by stripping the ``Strategy``
suffix and converting PascalCase to kebab-case, e.g.
``ExponentialBackoffStrategy`` becomes ``exponential-backoff``. The
registry is an explicit map filled at import time; no module scanning
or reflection is involved.
"""

from __future__ import annotations

__all__ = [
    "alias_to_class",
    "class_to_alias",
    "get_all_strategy_aliases",
    "make_strategy",
    "register_strategy",
]

import logging
import re
from typing import Any, TypeVar

from aretry.exceptions import StrategyConfigError
from aretry.strategies.base import BaseRetryStrategy
from aretry.strategies.callback import CallbackRetryStrategy
from aretry.strategies.circuit_breaker import CircuitBreakerStrategy
from aretry.strategies.custom_options import CustomOptionsStrategy
from aretry.strategies.decorrelated_jitter import DecorrelatedJitterStrategy
from aretry.strategies.exponential import ExponentialBackoffStrategy
from aretry.strategies.fibonacci import FibonacciBackoffStrategy
from aretry.strategies.fixed import FixedDelayStrategy
from aretry.strategies.http_response import HttpResponseStrategy
from aretry.strategies.linear import LinearBackoffStrategy
from aretry.strategies.rate_limit import RateLimitStrategy
from aretry.strategies.response_content import ResponseContentStrategy
from aretry.strategies.total_timeout import TotalTimeoutStrategy

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T", bound=type[BaseRetryStrategy])

_SUFFIX = "Strategy"
_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

_REGISTRY: dict[str, type[BaseRetryStrategy]] = {}


def class_to_alias(cls_or_name: type | str) -> str | None:
    """Return the kebab-case alias of a strategy class.

    Args:
        cls_or_name: A class or a class name, optionally qualified with
            its module.

    Returns:
        The alias, or None if the name does not end with ``Strategy``.

    Example:
        ```pycon
        >>> from aretry.strategies.registry import class_to_alias
        >>> class_to_alias("ExponentialBackoffStrategy")
        'exponential-backoff'
        >>> class_to_alias("HttpResponseStrategy")
        'http-response'
        >>> class_to_alias("Backoff") is None
        True

        ```
    """
    name = cls_or_name if isinstance(cls_or_name, str) else cls_or_name.__name__
    name = name.rsplit(".", maxsplit=1)[-1]
    if not name.endswith(_SUFFIX) or name == _SUFFIX:
        return None
    return _BOUNDARY.sub("-", name[: -len(_SUFFIX)]).lower()


def alias_to_class(alias: str) -> type[BaseRetryStrategy] | None:
    """Return the registered class for an alias, or None.

    Example:
        ```pycon
        >>> from aretry.strategies.registry import alias_to_class
        >>> alias_to_class("fixed-delay").__name__
        'FixedDelayStrategy'
        >>> alias_to_class("unknown") is None
        True

        ```
    """
    return _REGISTRY.get(alias.strip().lower())


def get_all_strategy_aliases() -> list[str]:
    """Return every registered alias, sorted."""
    return sorted(_REGISTRY)


def register_strategy(cls: T) -> T:
    """Register a strategy class under its alias.

    Can be used as a class decorator.

    Args:
        cls: A ``BaseRetryStrategy`` subclass whose name ends with
            ``Strategy``.

    Returns:
        The class, unchanged.

    Raises:
        StrategyConfigError: If the class is not a strategy, has no
            alias, or its alias is taken by another class.
    """
    if not (isinstance(cls, type) and issubclass(cls, BaseRetryStrategy)):
        msg = f"{cls!r} is not a BaseRetryStrategy subclass"
        raise StrategyConfigError(msg)
    alias = class_to_alias(cls)
    if alias is None:
        msg = f"Strategy class name {cls.__name__!r} must end with {_SUFFIX!r}"
        raise StrategyConfigError(msg)
    existing = _REGISTRY.get(alias)
    if existing is not None and existing is not cls:
        msg = f"Alias {alias!r} is already registered for {existing.__name__}"
        raise StrategyConfigError(msg)
    _REGISTRY[alias] = cls
    return cls


def _resolve(identifier: str | type[BaseRetryStrategy]) -> type[BaseRetryStrategy]:
    if isinstance(identifier, type):
        if issubclass(identifier, BaseRetryStrategy):
            return identifier
        msg = f"{identifier!r} is not a BaseRetryStrategy subclass"
        raise StrategyConfigError(msg)
    cls = alias_to_class(identifier)
    if cls is None:
        alias = class_to_alias(identifier)
        cls = alias_to_class(alias) if alias is not None else None
    if cls is None:
        msg = (
            f"Unknown retry strategy {identifier!r}. "
            f"Available strategies: {', '.join(get_all_strategy_aliases())}"
        )
        raise StrategyConfigError(msg)
    return cls


def make_strategy(
    identifier: str | type[BaseRetryStrategy], **options: Any
) -> BaseRetryStrategy:
    """Instantiate a strategy from an alias, a class name or a class.

    If the class rejects the options, the cause is logged and an
    ``ExponentialBackoffStrategy`` with default settings is returned.

    Args:
        identifier: Alias (``"fibonacci-backoff"``), class name
            (``"FibonacciBackoffStrategy"``) or class.
        **options: Keyword arguments for the strategy constructor.

    Returns:
        The strategy instance.

    Raises:
        StrategyConfigError: If the identifier is unknown.

    Example:
        ```pycon
        >>> from aretry.strategies.registry import make_strategy
        >>> make_strategy("linear-backoff", max_delay=10.0).max_delay
        10.0
        >>> type(make_strategy("linear-backoff", max_delay=-1)).__name__
        'ExponentialBackoffStrategy'

        ```
    """
    cls = _resolve(identifier)
    try:
        return cls(**options)
    except (TypeError, ValueError) as exc:
        logger.error(
            f"Failed to create retry strategy {cls.__name__} with options {options!r}: {exc}. "
            f"Falling back to ExponentialBackoffStrategy"
        )
        return ExponentialBackoffStrategy()


for _cls in (
    ExponentialBackoffStrategy,
    LinearBackoffStrategy,
    FixedDelayStrategy,
    FibonacciBackoffStrategy,
    DecorrelatedJitterStrategy,
    TotalTimeoutStrategy,
    ResponseContentStrategy,
    HttpResponseStrategy,
    CustomOptionsStrategy,
    CallbackRetryStrategy,
    RateLimitStrategy,
    CircuitBreakerStrategy,
):
    register_strategy(_cls)
del _cls
