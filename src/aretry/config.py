r"""Configuration dataclasses and defaults for the retry engine.

This module provides the configuration constants and the dataclass-based
configuration objects consumed by ``RetryExecutor`` and
``AsyncRetryExecutor``. Values can be given explicitly, merged with
overrides, or read from the process environment with
``RetryConfig.from_env``.

Recognised environment variables:

- ``RETRY_MAX_ATTEMPTS``: default maximum number of retries
- ``RETRY_DELAY``: base delay in seconds handed to the strategy
- ``RETRY_TIMEOUT``: per-attempt timeout in seconds (``none`` disables it)
- ``RETRY_TOTAL_TIMEOUT``: budget for the total-timeout strategy
- ``RETRY_STRATEGY``: strategy alias, e.g. ``fibonacci-backoff``
- ``RETRY_DISPATCH_EVENTS``: enable or disable lifecycle notifications
- ``RETRY_CB_FAILURE_THRESHOLD``, ``RETRY_CB_RESET_TIMEOUT``,
  ``RETRY_CB_FAIL_OPEN``: circuit breaker defaults
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_STRATEGY",
    "DEFAULT_TIMEOUT",
    "DEFAULT_TOTAL_TIMEOUT",
    "CircuitBreakerDefaults",
    "RetryConfig",
]

import os
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from aretry.core.validation import validate_circuit_params, validate_retry_params
from aretry.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from aretry.strategies.base import BaseRetryStrategy

# Default maximum number of retries
# Total attempts = max_retries + 1 (initial attempt)
DEFAULT_MAX_RETRIES = 3

# Default base delay in seconds handed to the strategy
# With exponential backoff: 1s, 2s, 4s, ...
DEFAULT_RETRY_DELAY = 1.0

# Default per-attempt timeout in seconds
DEFAULT_TIMEOUT = 30.0

# Default budget in seconds for the total-timeout strategy
DEFAULT_TOTAL_TIMEOUT = 300.0

# Strategy used when nothing else is configured
DEFAULT_STRATEGY = "exponential-backoff"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})
_NONE_VALUES = frozenset({"", "none", "null"})


@dataclass(frozen=True)
class CircuitBreakerDefaults:
    """Default circuit breaker settings with per-service overrides.

    Args:
        failure_threshold: Consecutive failures before the circuit opens.
        reset_timeout: Seconds the circuit stays open before a probe.
        fail_open: Whether the breaker lets calls through when its state
            store cannot be read or written.
        services: Per-service overrides, e.g.
            ``{"billing": {"failure_threshold": 2}}``.

    Example:
        ```pycon
        >>> from aretry.config import CircuitBreakerDefaults
        >>> defaults = CircuitBreakerDefaults(services={"billing": {"failure_threshold": 2}})
        >>> defaults.for_service("billing")["failure_threshold"]
        2
        >>> defaults.for_service("search")["failure_threshold"]
        5

        ```
    """

    failure_threshold: int = 5
    reset_timeout: float = 60.0
    fail_open: bool = True
    services: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        validate_circuit_params(self.failure_threshold, self.reset_timeout)

    def for_service(self, name: str) -> dict[str, Any]:
        """Return the breaker keyword arguments for a service.

        Args:
            name: The service name, also used as the breaker key.

        Returns:
            Keyword arguments accepted by ``CircuitBreakerStrategy``.
        """
        settings: dict[str, Any] = {
            "failure_threshold": self.failure_threshold,
            "reset_timeout": self.reset_timeout,
            "fail_open": self.fail_open,
            "key": name,
        }
        settings.update(self.services.get(name, {}))
        return settings


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Args:
        max_retries: Maximum number of retries. Must be >= 0.
        base_delay: Base delay in seconds handed to the strategy.
        timeout: Per-attempt timeout in seconds, ``None`` to disable.
        total_timeout: Budget used when the ``total-timeout`` strategy is
            built from configuration.
        strategy: Alias of the default strategy.
        strategy_options: Keyword arguments for the default strategy.
        dispatch_events: Whether lifecycle notifications are dispatched.
        circuit_breaker: Circuit breaker defaults.

    Example:
        ```pycon
        >>> from aretry.config import RetryConfig
        >>> config = RetryConfig()
        >>> config.max_retries
        3
        >>> merged = config.merge(max_retries=10)
        >>> merged.max_retries
        10
        >>> config.max_retries
        3

        ```
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_RETRY_DELAY
    timeout: float | None = DEFAULT_TIMEOUT
    total_timeout: float = DEFAULT_TOTAL_TIMEOUT
    strategy: str = DEFAULT_STRATEGY
    strategy_options: Mapping[str, Any] = field(default_factory=dict)
    dispatch_events: bool = True
    circuit_breaker: CircuitBreakerDefaults = field(default_factory=CircuitBreakerDefaults)

    def __post_init__(self) -> None:
        validate_retry_params(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            timeout=self.timeout,
            total_timeout=self.total_timeout,
        )

    def merge(self, **overrides: Any) -> RetryConfig:
        """Create a new config with the given parameters overridden.

        Only non-None override values are applied.

        Args:
            **overrides: Keyword arguments for parameters to override.

        Returns:
            A new ``RetryConfig`` instance.
        """
        filtered_overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered_overrides)

    def to_dict(self) -> dict[str, Any]:
        """Convert the configuration to a plain dictionary.

        Returns:
            Dictionary with the configuration values.
        """
        return {
            "max_retries": self.max_retries,
            "base_delay": self.base_delay,
            "timeout": self.timeout,
            "total_timeout": self.total_timeout,
            "strategy": self.strategy,
            "strategy_options": dict(self.strategy_options),
            "dispatch_events": self.dispatch_events,
            "circuit_breaker": {
                "failure_threshold": self.circuit_breaker.failure_threshold,
                "reset_timeout": self.circuit_breaker.reset_timeout,
                "fail_open": self.circuit_breaker.fail_open,
                "services": {k: dict(v) for k, v in self.circuit_breaker.services.items()},
            },
        }

    def build_strategy(self) -> BaseRetryStrategy:
        """Instantiate the configured default strategy.

        The ``total-timeout`` and ``circuit-breaker`` strategies receive
        ``total_timeout`` and the circuit breaker defaults unless
        ``strategy_options`` overrides them.

        Returns:
            A new strategy instance.

        Raises:
            StrategyConfigError: If the alias is unknown.
        """
        from aretry.strategies.registry import make_strategy

        options: dict[str, Any] = {}
        if self.strategy == "total-timeout":
            options["total_timeout"] = self.total_timeout
        elif self.strategy == "circuit-breaker":
            options.update(self.circuit_breaker.for_service("default"))
        options.update(self.strategy_options)
        return make_strategy(self.strategy, **options)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RetryConfig:
        """Build a configuration from environment variables.

        Args:
            environ: The mapping to read from. Defaults to ``os.environ``.

        Returns:
            A validated ``RetryConfig``.

        Raises:
            ConfigurationError: If a variable holds an invalid value.

        Example:
            ```pycon
            >>> from aretry.config import RetryConfig
            >>> config = RetryConfig.from_env({"RETRY_MAX_ATTEMPTS": "5", "RETRY_TIMEOUT": "none"})
            >>> config.max_retries, config.timeout
            (5, None)

            ```
        """
        env = os.environ if environ is None else environ
        breaker = CircuitBreakerDefaults(
            failure_threshold=_read(env, "RETRY_CB_FAILURE_THRESHOLD", int, 5),
            reset_timeout=_read(env, "RETRY_CB_RESET_TIMEOUT", float, 60.0),
            fail_open=_read_bool(env, "RETRY_CB_FAIL_OPEN", default=True),
        )
        timeout_raw = env.get("RETRY_TIMEOUT")
        timeout: float | None = DEFAULT_TIMEOUT
        if timeout_raw is not None:
            timeout = (
                None
                if timeout_raw.strip().lower() in _NONE_VALUES
                else _read(env, "RETRY_TIMEOUT", float, DEFAULT_TIMEOUT)
            )
        return cls(
            max_retries=_read(env, "RETRY_MAX_ATTEMPTS", int, DEFAULT_MAX_RETRIES),
            base_delay=_read(env, "RETRY_DELAY", float, DEFAULT_RETRY_DELAY),
            timeout=timeout,
            total_timeout=_read(env, "RETRY_TOTAL_TIMEOUT", float, DEFAULT_TOTAL_TIMEOUT),
            strategy=env.get("RETRY_STRATEGY", DEFAULT_STRATEGY).strip() or DEFAULT_STRATEGY,
            dispatch_events=_read_bool(env, "RETRY_DISPATCH_EVENTS", default=True),
            circuit_breaker=breaker,
        )


def _read(env: Mapping[str, str], name: str, cast: type, default: Any) -> Any:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        msg = f"{name} must be a valid {cast.__name__}, got {raw!r}"
        raise ConfigurationError(msg) from exc


def _read_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean flag, got {raw!r}"
    raise ConfigurationError(msg)
