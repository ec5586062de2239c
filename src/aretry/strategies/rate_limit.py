r"""Strategy enforcing a shared sliding-window retry budget."""

from __future__ import annotations

__all__ = ["RateLimitStrategy"]

import logging
import math
import threading
import time
from typing import TYPE_CHECKING, Any

from aretry.exceptions import StrategyConfigError
from aretry.strategies.wrapper import WrapperStrategy

if TYPE_CHECKING:
    from aretry.strategies.base import BaseRetryStrategy

logger: logging.Logger = logging.getLogger(__name__)

# Usage ratio from which extra delay is added
SLOWDOWN_THRESHOLD = 0.8

# Window end timestamps of recorded retries, per storage key
_WINDOWS: dict[str, list[float]] = {}
_WINDOWS_LOCK = threading.Lock()


class RateLimitStrategy(WrapperStrategy):
    """Limit how many retries all users of a storage key may perform.

    Every accepted retry is recorded in a sliding window shared by all
    instances with the same ``storage_key``. Once ``max_attempts``
    retries happened within ``time_window`` seconds, further retries are
    refused. From 80% usage, ``ceil(usage * time_window * 0.1)`` seconds
    are added to the inner strategy's delay.

    Args:
        inner_strategy: The wrapped strategy.
        max_attempts: Retries allowed per window.
        time_window: Window length in seconds.
        storage_key: Key of the shared window.

    Example:
        ```pycon
        >>> from aretry.strategies import FixedDelayStrategy, RateLimitStrategy
        >>> strategy = RateLimitStrategy(FixedDelayStrategy(), max_attempts=2, storage_key="doc")
        >>> strategy.should_retry(0, 5), strategy.should_retry(1, 5), strategy.should_retry(2, 5)
        (True, True, False)
        >>> strategy.reset()

        ```
    """

    def __init__(
        self,
        inner_strategy: BaseRetryStrategy | None = None,
        max_attempts: int = 100,
        time_window: float = 60.0,
        storage_key: str = "default",
    ) -> None:
        if max_attempts <= 0:
            msg = f"max_attempts must be > 0, got {max_attempts}"
            raise StrategyConfigError(msg)
        if time_window <= 0:
            msg = f"time_window must be > 0, got {time_window}"
            raise StrategyConfigError(msg)
        super().__init__(inner_strategy)
        self.max_attempts = max_attempts
        self.time_window = time_window
        self.storage_key = storage_key

    def get_delay(self, attempt: int, base_delay: float) -> float:
        delay = self.inner_strategy.get_delay(attempt, base_delay)
        current_rate = self.current_rate()
        if current_rate >= self.max_attempts * SLOWDOWN_THRESHOLD:
            usage = current_rate / self.max_attempts
            extra = math.ceil(usage * self.time_window * 0.1)
            logger.debug(
                f"Rate limit {self.storage_key!r} at {usage:.0%}, adding {extra}s of delay"
            )
            delay += extra
        return delay

    def should_retry(
        self, attempt: int, max_attempts: int, last_error: Exception | None = None
    ) -> bool:
        if not self.inner_strategy.should_retry(attempt, max_attempts, last_error):
            return False
        now = time.time()
        with _WINDOWS_LOCK:
            window = self._prune(now)
            if len(window) >= self.max_attempts:
                logger.debug(f"Rate limit {self.storage_key!r} reached, not retrying")
                return False
            window.append(now + self.time_window)
        return True

    def current_rate(self) -> int:
        """Number of retries recorded in the current window."""
        with _WINDOWS_LOCK:
            return len(self._prune(time.time()))

    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.current_rate())

    def time_until_reset(self) -> float:
        """Seconds until the oldest recorded retry leaves the window."""
        now = time.time()
        with _WINDOWS_LOCK:
            window = self._prune(now)
            if not window:
                return 0.0
            return max(0.0, min(window) - now)

    def rate_limit_info(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "time_window": self.time_window,
            "remaining": self.remaining_attempts(),
            "reset_in": self.time_until_reset(),
            "current_rate": self.current_rate(),
            "storage_key": self.storage_key,
        }

    def reset(self) -> None:
        """Forget the retries recorded for this storage key."""
        with _WINDOWS_LOCK:
            _WINDOWS.pop(self.storage_key, None)

    @staticmethod
    def reset_all() -> None:
        """Forget the retries recorded for every storage key."""
        with _WINDOWS_LOCK:
            _WINDOWS.clear()

    def _prune(self, now: float) -> list[float]:
        window = [end for end in _WINDOWS.get(self.storage_key, []) if end > now]
        _WINDOWS[self.storage_key] = window
        return window
