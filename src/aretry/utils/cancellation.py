r"""Cooperative cancellation for retry runs."""

from __future__ import annotations

__all__ = ["CancellationToken"]

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)


class CancellationToken:
    """Token used to cancel a retry run from another thread or task.

    Cancelling aborts a pending backoff wait immediately. The async
    executor also aborts the in-flight attempt. A token can be shared by
    several runs; once cancelled it stays cancelled.

    Example:
        ```pycon
        >>> from aretry.utils.cancellation import CancellationToken
        >>> token = CancellationToken()
        >>> token.cancelled
        False
        >>> token.cancel("shutting down")
        >>> token.cancelled, token.reason
        (True, 'shutting down')
        >>> token.wait(10.0)  # returns at once
        True

        ```
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """Whether ``cancel`` has been called."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """The reason given to ``cancel``, if any."""
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Cancel the token and notify registered callbacks.

        Calling ``cancel`` more than once has no further effect.

        Args:
            reason: Optional human-readable reason.
        """
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        logger.debug(f"Cancellation requested: {reason}")
        for callback in callbacks:
            try:
                callback()
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Error in cancellation callback: {e}")

    def wait(self, seconds: float) -> bool:
        """Block for up to ``seconds`` or until the token is cancelled.

        Args:
            seconds: Maximum time to wait.

        Returns:
            ``True`` if the token was cancelled.
        """
        return self._event.wait(max(0.0, seconds))

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback invoked once on cancellation.

        The callback runs immediately if the token is already cancelled.

        Args:
            callback: A zero-argument callable.

        Returns:
            A function removing the callback again.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)
        callback()
        return lambda: None

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
