r"""Circuit breaker strategy for preventing cascading failures.

The circuit breaker wraps another strategy and stops issuing calls
after repeated failures. It has three states:

- CLOSED: Normal operation, attempts go through
- OPEN: After N consecutive failures, attempts are refused without
  invoking the operation
- HALF_OPEN: After the reset timeout, exactly one probe attempt is
  allowed to check whether the service recovered

The state lives in a ``BreakerStateStore`` under the breaker's key, so
several strategy instances (and several runs) using the same key share
one logical breaker. Transitions for a key are serialised by a
per-key lock.

Example:
    ```pycon
    >>> from aretry.strategies.circuit_breaker import CircuitBreakerStrategy
    >>> from aretry.strategies.circuit_breaker import InMemoryBreakerStateStore
    >>> breaker = CircuitBreakerStrategy(
    ...     failure_threshold=2, key="payments", store=InMemoryBreakerStateStore()
    ... )
    >>> breaker.record_failure(ValueError("boom"))
    >>> breaker.record_failure(ValueError("boom"))
    >>> breaker.state
    <CircuitState.OPEN: 'open'>

    ```
"""

from __future__ import annotations

__all__ = [
    "BreakerState",
    "BreakerStateStore",
    "CircuitBreakerStrategy",
    "CircuitState",
    "InMemoryBreakerStateStore",
]

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from aretry.core.validation import validate_circuit_params
from aretry.exceptions import CircuitOpenError, ConfigurationError, StrategyConfigError
from aretry.strategies.wrapper import WrapperStrategy

if TYPE_CHECKING:
    from collections.abc import Callable

    from aretry.strategies.base import BaseRetryStrategy

logger: logging.Logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states.

    Attributes:
        CLOSED: Normal operation, attempts are allowed.
        OPEN: Circuit is open, attempts are refused.
        HALF_OPEN: Testing if the service recovered, allows one probe.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass
class BreakerState:
    """Snapshot of one breaker's shared state."""

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: float | None = None
    probe_in_flight: bool = False


class BreakerStateStore(ABC):
    """Storage for breaker state, keyed by breaker identity.

    A shared cache backend implements these two methods to share
    breakers between processes. Implementations may raise on
    backend errors; the breaker logs them and applies its
    ``fail_open`` policy.
    """

    @abstractmethod
    def load(self, key: str) -> BreakerState | None:
        """Return the state stored under ``key``, or None if absent."""

    @abstractmethod
    def save(self, key: str, state: BreakerState) -> None:
        """Store ``state`` under ``key``."""


class InMemoryBreakerStateStore(BreakerStateStore):
    """Process-local breaker state store.

    Example:
        ```pycon
        >>> from aretry.strategies.circuit_breaker import (
        ...     BreakerState,
        ...     InMemoryBreakerStateStore,
        ... )
        >>> store = InMemoryBreakerStateStore()
        >>> store.load("search") is None
        True
        >>> store.save("search", BreakerState(failure_count=2))
        >>> store.load("search").failure_count
        2

        ```
    """

    def __init__(self) -> None:
        self._states: dict[str, BreakerState] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> BreakerState | None:
        with self._lock:
            state = self._states.get(key)
            return None if state is None else replace(state)

    def save(self, key: str, state: BreakerState) -> None:
        with self._lock:
            self._states[key] = replace(state)

    def clear(self) -> None:
        with self._lock:
            self._states.clear()


DEFAULT_STORE = InMemoryBreakerStateStore()

_KEY_LOCKS: dict[str, threading.Lock] = {}
_KEY_LOCKS_GUARD = threading.Lock()


def _lock_for(key: str) -> threading.Lock:
    with _KEY_LOCKS_GUARD:
        lock = _KEY_LOCKS.get(key)
        if lock is None:
            lock = _KEY_LOCKS[key] = threading.Lock()
        return lock


class _StoreUnavailableError(Exception):
    pass


class CircuitBreakerStrategy(WrapperStrategy):
    r"""Strategy implementing the circuit breaker state machine.

    The executor calls ``before_attempt`` before every invocation. While
    the circuit is open it raises ``CircuitOpenError`` and the operation
    is not invoked. Once ``reset_timeout`` seconds passed since the last
    failure, the first caller moves the circuit to half-open and claims
    the single probe slot; concurrent callers are refused until the
    probe finished. A successful probe closes the circuit, a failed one
    re-opens it and restarts the timer.

    Args:
        inner_strategy: The wrapped strategy. Defaults to
            ``ExponentialBackoffStrategy()``.
        failure_threshold: Consecutive failures before the circuit opens.
            Must be > 0.
        reset_timeout: Seconds the circuit stays open before a probe.
            Must be > 0.
        key: Identity of the logical breaker.
        store: State store. Defaults to a process-wide in-memory store.
        fail_open: Whether to permit attempts when the store fails.
        expected_exception: Optional exception type(s) counted as
            failures. Other errors leave the breaker untouched.
        on_state_change: Optional callback receiving
            ``(old_state, new_state)`` after each transition.

    Raises:
        StrategyConfigError: If a parameter is out of range.

    Example:
        ```pycon
        >>> from aretry.strategies import CircuitBreakerStrategy, FixedDelayStrategy
        >>> from aretry.strategies.circuit_breaker import InMemoryBreakerStateStore
        >>> breaker = CircuitBreakerStrategy(
        ...     FixedDelayStrategy(),
        ...     failure_threshold=3,
        ...     reset_timeout=30.0,
        ...     store=InMemoryBreakerStateStore(),
        ... )
        >>> breaker.state
        <CircuitState.CLOSED: 'closed'>
        >>> breaker.get_delay(0, 1.5)
        1.5

        ```
    """

    def __init__(
        self,
        inner_strategy: BaseRetryStrategy | None = None,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        key: str = "default",
        store: BreakerStateStore | None = None,
        fail_open: bool = True,
        expected_exception: type[Exception] | tuple[type[Exception], ...] | None = None,
        on_state_change: Callable[[CircuitState, CircuitState], None] | None = None,
    ) -> None:
        try:
            validate_circuit_params(failure_threshold, reset_timeout)
        except ConfigurationError as exc:
            raise StrategyConfigError(str(exc)) from exc
        super().__init__(inner_strategy)
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.key = key
        self.store = store if store is not None else DEFAULT_STORE
        self.fail_open = fail_open
        self.expected_exception = expected_exception
        self.on_state_change = on_state_change
        self._lock = _lock_for(key)

    @property
    def state(self) -> CircuitState:
        """The current circuit state."""
        return self._snapshot().state

    @property
    def failure_count(self) -> int:
        """The current count of consecutive failures."""
        return self._snapshot().failure_count

    @property
    def last_failure_time(self) -> float | None:
        """Timestamp of the last failure, or None if there was none."""
        return self._snapshot().last_failure_time

    def reset(self) -> None:
        """Close the circuit and clear the failure count."""
        with self._lock:
            old = self._snapshot().state
            self._save(BreakerState())
        self._notify(old, CircuitState.CLOSED)

    def before_attempt(self) -> None:
        """Refuse the attempt unless the circuit lets it through.

        Raises:
            CircuitOpenError: If the circuit is open and the reset timeout
                has not elapsed, if a probe is already in flight, or if
                the store failed and ``fail_open`` is false.
        """
        transition: tuple[CircuitState, CircuitState] | None = None
        with self._lock:
            try:
                current = self._load()
            except _StoreUnavailableError as exc:
                if not self.fail_open:
                    msg = f"Circuit breaker {self.key!r} state is unavailable"
                    raise CircuitOpenError(msg, key=self.key) from exc
                current = BreakerState()

            if current.state == CircuitState.OPEN:
                remaining = self._remaining_open_time(current)
                if remaining > 0:
                    msg = (
                        f"Circuit breaker {self.key!r} is OPEN "
                        f"(failed {current.failure_count} times). Retry after {remaining:.1f}s"
                    )
                    raise CircuitOpenError(msg, key=self.key, retry_after=remaining)
                current.state = CircuitState.HALF_OPEN
                current.probe_in_flight = True
                transition = (CircuitState.OPEN, CircuitState.HALF_OPEN)
            elif current.state == CircuitState.HALF_OPEN:
                if current.probe_in_flight:
                    msg = f"Circuit breaker {self.key!r} is HALF_OPEN with a probe in flight"
                    raise CircuitOpenError(msg, key=self.key)
                current.probe_in_flight = True
            if current.state != CircuitState.CLOSED:
                self._try_save(current)
        if transition is not None:
            self._notify(*transition)
        super().before_attempt()

    def record_success(self) -> None:
        """Record a successful attempt.

        Resets the failure count and closes the circuit if it was
        half-open.
        """
        transition: tuple[CircuitState, CircuitState] | None = None
        with self._lock:
            try:
                current = self._load()
            except _StoreUnavailableError:
                current = None
            if current is not None:
                current.failure_count = 0
                current.probe_in_flight = False
                if current.state == CircuitState.HALF_OPEN:
                    current.state = CircuitState.CLOSED
                    transition = (CircuitState.HALF_OPEN, CircuitState.CLOSED)
                    logger.debug(f"Circuit breaker {self.key!r} recovery successful, circuit CLOSED")
                self._try_save(current)
        if transition is not None:
            self._notify(*transition)
        super().record_success()

    def record_failure(self, error: Exception) -> None:
        """Record a failed attempt.

        Increments the failure count and opens the circuit when the
        threshold is reached or when the failed attempt was the probe.
        An error outside ``expected_exception`` is not a failure: it
        leaves the count untouched and closes the circuit if it ended the
        probe.

        Args:
            error: The error raised by the attempt.
        """
        if self.expected_exception is not None and not isinstance(
            error, self.expected_exception
        ):
            self._release_probe(close=True)
            super().record_failure(error)
            return

        transition: tuple[CircuitState, CircuitState] | None = None
        with self._lock:
            try:
                current = self._load()
            except _StoreUnavailableError:
                current = None
            if current is not None:
                current.failure_count += 1
                current.last_failure_time = time.time()
                current.probe_in_flight = False
                if current.state == CircuitState.HALF_OPEN:
                    current.state = CircuitState.OPEN
                    transition = (CircuitState.HALF_OPEN, CircuitState.OPEN)
                    logger.debug(f"Circuit breaker {self.key!r} probe failed, circuit re-OPENED")
                elif (
                    current.state == CircuitState.CLOSED
                    and current.failure_count >= self.failure_threshold
                ):
                    current.state = CircuitState.OPEN
                    transition = (CircuitState.CLOSED, CircuitState.OPEN)
                    logger.warning(
                        f"Circuit breaker {self.key!r} OPENED after "
                        f"{current.failure_count} consecutive failures"
                    )
                self._try_save(current)
        if transition is not None:
            self._notify(*transition)
        super().record_failure(error)

    def abort_attempt(self) -> None:
        """Release the probe slot of a cancelled or interrupted attempt.

        The circuit stays half-open, so the next caller runs the probe.
        """
        self._release_probe(close=False)
        super().abort_attempt()

    def should_retry(
        self, attempt: int, max_attempts: int, last_error: Exception | None = None
    ) -> bool:
        if not self.inner_strategy.should_retry(attempt, max_attempts, last_error):
            return False
        try:
            current = self._load()
        except _StoreUnavailableError:
            return self.fail_open
        if current.state == CircuitState.OPEN and self._remaining_open_time(current) > 0:
            logger.debug(f"Circuit breaker {self.key!r} is OPEN, not retrying")
            return False
        return True

    def get_delay(self, attempt: int, base_delay: float) -> float:
        try:
            current = self._load()
        except _StoreUnavailableError:
            current = None
        if current is not None and current.state == CircuitState.HALF_OPEN:
            return 0.0
        return self.inner_strategy.get_delay(attempt, base_delay)

    def _release_probe(self, close: bool) -> None:
        transition: tuple[CircuitState, CircuitState] | None = None
        with self._lock:
            try:
                current = self._load()
            except _StoreUnavailableError:
                return
            if current.state != CircuitState.HALF_OPEN or not current.probe_in_flight:
                return
            current.probe_in_flight = False
            if close:
                current.state = CircuitState.CLOSED
                current.failure_count = 0
                transition = (CircuitState.HALF_OPEN, CircuitState.CLOSED)
            self._try_save(current)
        if transition is not None:
            self._notify(*transition)

    def _remaining_open_time(self, current: BreakerState) -> float:
        if current.last_failure_time is None:
            return 0.0
        return self.reset_timeout - (time.time() - current.last_failure_time)

    def _snapshot(self) -> BreakerState:
        try:
            return self._load()
        except _StoreUnavailableError:
            return BreakerState()

    def _load(self) -> BreakerState:
        try:
            state = self.store.load(self.key)
        except Exception as exc:
            logger.warning(f"Failed to read circuit breaker state for {self.key!r}: {exc}")
            raise _StoreUnavailableError from exc
        return BreakerState() if state is None else state

    def _save(self, state: BreakerState) -> None:
        self.store.save(self.key, state)

    def _try_save(self, state: BreakerState) -> None:
        try:
            self._save(state)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Failed to write circuit breaker state for {self.key!r}: {exc}")

    def _notify(self, old_state: CircuitState, new_state: CircuitState) -> None:
        if old_state == new_state:
            return
        logger.debug(
            f"Circuit breaker {self.key!r} state changed: {old_state.value} -> {new_state.value}"
        )
        if self.on_state_change is not None:
            try:
                self.on_state_change(old_state, new_state)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Error in circuit breaker state change callback: {e}")
