r"""Callback manager for dispatching retry lifecycle events.

This module provides the CallbackManager class that delivers lifecycle
events to the registered listeners.
"""

from __future__ import annotations

__all__ = ["CallbackManager"]

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from aretry.callbacks import FailedEvent, RetryingEvent, RetryListener, SucceededEvent

logger: logging.Logger = logging.getLogger(__name__)


class CallbackManager:
    """Dispatches lifecycle events to listeners.

    Listeners are called synchronously, in registration order. An error
    raised by a listener is logged and never changes the outcome of the
    run, nor prevents the other listeners from being called.

    Args:
        listeners: Initial listeners.
        enabled: Whether events are dispatched at all.
    """

    def __init__(self, listeners: Iterable[RetryListener] = (), enabled: bool = True) -> None:
        self.listeners: list[RetryListener] = list(listeners)
        self.enabled = enabled

    def add_listener(self, listener: RetryListener) -> None:
        self.listeners.append(listener)

    def on_retrying(self, event: RetryingEvent) -> None:
        self._dispatch("on_retrying", event)

    def on_success(self, event: SucceededEvent) -> None:
        self._dispatch("on_success", event)

    def on_failure(self, event: FailedEvent) -> None:
        self._dispatch("on_failure", event)

    def _dispatch(self, method: str, event: Any) -> None:
        if not self.enabled:
            return
        for listener in list(self.listeners):
            handler = getattr(listener, method, None)
            if handler is None:
                continue
            try:
                handler(event)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Error in retry listener {listener!r} during {method}: {e}")
