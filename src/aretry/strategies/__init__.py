r"""Retry strategies computing delays and continuation decisions.

This package provides the strategies used by the retry executors. A
strategy computes the delay before the next attempt and decides whether
another attempt should be made at all. Wrapper strategies decorate an
inner strategy, e.g. to bound a run by a time budget or to guard a
service with a circuit breaker.
"""

from __future__ import annotations

__all__ = [
    "BaseRetryStrategy",
    "BreakerState",
    "BreakerStateStore",
    "CallbackRetryStrategy",
    "CircuitBreakerStrategy",
    "CircuitState",
    "CustomOptionsStrategy",
    "DecorrelatedJitterStrategy",
    "ExponentialBackoffStrategy",
    "FibonacciBackoffStrategy",
    "FixedDelayStrategy",
    "HttpResponseStrategy",
    "InMemoryBreakerStateStore",
    "LinearBackoffStrategy",
    "RateLimitStrategy",
    "ResponseContentStrategy",
    "TotalTimeoutStrategy",
    "WrapperStrategy",
    "alias_to_class",
    "class_to_alias",
    "get_all_strategy_aliases",
    "make_strategy",
    "register_strategy",
]

from aretry.strategies.base import BaseRetryStrategy
from aretry.strategies.callback import CallbackRetryStrategy
from aretry.strategies.circuit_breaker import (
    BreakerState,
    BreakerStateStore,
    CircuitBreakerStrategy,
    CircuitState,
    InMemoryBreakerStateStore,
)
from aretry.strategies.custom_options import CustomOptionsStrategy
from aretry.strategies.decorrelated_jitter import DecorrelatedJitterStrategy
from aretry.strategies.exponential import ExponentialBackoffStrategy
from aretry.strategies.fibonacci import FibonacciBackoffStrategy
from aretry.strategies.fixed import FixedDelayStrategy
from aretry.strategies.http_response import HttpResponseStrategy
from aretry.strategies.linear import LinearBackoffStrategy
from aretry.strategies.rate_limit import RateLimitStrategy
from aretry.strategies.registry import (
    alias_to_class,
    class_to_alias,
    get_all_strategy_aliases,
    make_strategy,
    register_strategy,
)
from aretry.strategies.response_content import ResponseContentStrategy
from aretry.strategies.total_timeout import TotalTimeoutStrategy
from aretry.strategies.wrapper import WrapperStrategy
