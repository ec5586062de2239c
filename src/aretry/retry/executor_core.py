r"""Shared core logic for retry executors.

This module provides the base class shared by the synchronous and
asynchronous retry executors. It holds the configuration, the fluent
setters, and the bookkeeping performed around each attempt: error
classification, attempt recording, strategy hooks and lifecycle
notifications. The subclasses only implement the loop itself, because
invoking the operation and waiting differ between the two.
"""

from __future__ import annotations

__all__ = ["BaseRetryExecutor", "RunPlan"]

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from aretry.callbacks import FailedEvent, RetryingEvent, SucceededEvent
from aretry.config import RetryConfig
from aretry.context import RetryContext
from aretry.core.validation import validate_timeout
from aretry.exceptions import RetryCancelledError
from aretry.handlers.manager import ExceptionHandlerManager
from aretry.result import RetryResult
from aretry.retry.decider import RetryDecider
from aretry.retry.manager import CallbackManager
from aretry.retry.overrides import RetryOverrides, SupportsRetryOverrides

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from aretry.callbacks import RetryListener
    from aretry.retry.decider import RetryPredicate
    from aretry.strategies.base import BaseRetryStrategy
    from aretry.utils.cancellation import CancellationToken

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class RunPlan:
    """Effective settings and state of one run."""

    max_retries: int
    base_delay: float
    timeout: float | None
    strategy: BaseRetryStrategy
    decider: RetryDecider
    context: RetryContext


class BaseRetryExecutor:
    """Configuration and per-attempt bookkeeping shared by the executors.

    Values not given explicitly come from ``config``, which defaults to
    ``RetryConfig()``. The strategy defaults to the one configured in
    ``config``, the handler manager to an ``ExceptionHandlerManager``
    with the built-in handlers.

    Args:
        config: Base configuration.
        max_retries: Maximum number of retries.
        base_delay: Base delay in seconds handed to the strategy.
        timeout: Per-attempt timeout in seconds.
        strategy: The retry strategy.
        handler_manager: The exception classification registry.
        listeners: Lifecycle listeners.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        max_retries: int | None = None,
        base_delay: float | None = None,
        timeout: float | None = None,
        strategy: BaseRetryStrategy | None = None,
        handler_manager: ExceptionHandlerManager | None = None,
        listeners: Iterable[RetryListener] = (),
    ) -> None:
        self.config = (config or RetryConfig()).merge(
            max_retries=max_retries, base_delay=base_delay, timeout=timeout
        )
        self.strategy = strategy if strategy is not None else self.config.build_strategy()
        self.handler_manager = (
            handler_manager if handler_manager is not None else ExceptionHandlerManager()
        )
        self.callbacks = CallbackManager(listeners, enabled=self.config.dispatch_events)
        self.predicate: RetryPredicate | None = None
        self.additional_patterns: list[str] = []
        self.additional_exceptions: list[type[BaseException]] = []
        self.last_context: RetryContext | None = None
        self._pending_metadata: dict[str, Any] = {}

    def with_strategy(self, strategy: BaseRetryStrategy) -> BaseRetryExecutor:
        self.strategy = strategy
        return self

    def with_max_retries(self, max_retries: int) -> BaseRetryExecutor:
        self.config = self.config.merge(max_retries=max_retries)
        return self

    def with_base_delay(self, base_delay: float) -> BaseRetryExecutor:
        self.config = self.config.merge(base_delay=base_delay)
        return self

    def with_timeout(self, timeout: float | None) -> BaseRetryExecutor:
        """Set the per-attempt timeout, ``None`` to disable it."""
        validate_timeout(timeout)
        self.config = replace(self.config, timeout=timeout)
        return self

    def with_metadata(self, metadata: Mapping[str, Any]) -> BaseRetryExecutor:
        """Attach metadata to the context of the next run."""
        self._pending_metadata.update(metadata)
        return self

    def retry_if(self, predicate: RetryPredicate) -> BaseRetryExecutor:
        """Only retry errors for which ``predicate(error, info)`` is true.

        The predicate can veto a retry but never makes an error
        retryable that the type and pattern rules reject.
        """
        self.predicate = predicate
        return self

    def retry_unless(self, predicate: RetryPredicate) -> BaseRetryExecutor:
        """Never retry errors for which ``predicate(error, info)`` is true."""
        self.predicate = lambda error, info: not predicate(error, info)
        return self

    def add_listener(self, listener: RetryListener) -> BaseRetryExecutor:
        self.callbacks.add_listener(listener)
        return self

    def with_overrides(self, overrides: RetryOverrides) -> BaseRetryExecutor:
        """Apply overrides to every following run."""
        self.config = self.config.merge(
            max_retries=overrides.max_retries,
            base_delay=overrides.base_delay,
            timeout=overrides.timeout,
        )
        if overrides.strategy is not None:
            self.strategy = overrides.strategy
        self.additional_patterns.extend(overrides.additional_patterns)
        self.additional_exceptions.extend(overrides.additional_exceptions)
        return self

    def _item_overrides(self, work_item: Callable[[], Any]) -> RetryOverrides | None:
        if isinstance(work_item, SupportsRetryOverrides):
            return work_item.retry_overrides()
        return None

    def _prepare(
        self,
        additional_patterns: Iterable[str],
        additional_exceptions: Iterable[type[BaseException]],
        overrides: RetryOverrides | None = None,
    ) -> RunPlan:
        overrides = overrides or RetryOverrides()
        max_retries = (
            overrides.max_retries if overrides.max_retries is not None else self.config.max_retries
        )
        base_delay = (
            overrides.base_delay if overrides.base_delay is not None else self.config.base_delay
        )
        timeout = overrides.timeout if overrides.timeout is not None else self.config.timeout
        if overrides.max_retries is not None or overrides.base_delay is not None:
            # validates the overridden values
            self.config.merge(max_retries=max_retries, base_delay=base_delay)
        validate_timeout(timeout)
        strategy = overrides.strategy if overrides.strategy is not None else self.strategy

        decider = RetryDecider(
            patterns=[
                *self.handler_manager.get_all_patterns(),
                *self.additional_patterns,
                *overrides.additional_patterns,
                *additional_patterns,
            ],
            exception_types=[
                *self.handler_manager.get_all_exceptions(),
                *self.additional_exceptions,
                *overrides.additional_exceptions,
                *additional_exceptions,
            ],
            exception_checks=self.handler_manager.get_all_exception_checks(),
            predicate=self.predicate,
        )
        context = RetryContext(max_retries=max_retries)
        if self._pending_metadata:
            context.add_metadata(self._pending_metadata)
            self._pending_metadata = {}
        self.last_context = context
        strategy.start(context)
        return RunPlan(
            max_retries=max_retries,
            base_delay=base_delay,
            timeout=timeout,
            strategy=strategy,
            decider=decider,
            context=context,
        )

    def _handle_failure(
        self, plan: RunPlan, attempt: int, error: Exception, duration: float
    ) -> float | None:
        """Record a failed attempt and decide whether to retry.

        Returns:
            The delay before the next attempt, or None if the error is
            terminal.
        """
        context = plan.context
        plan.strategy.record_failure(error)
        retryable, reason = plan.decider.is_retryable(
            error, attempt, plan.max_retries, context.exception_history
        )
        delay: float | None = None
        if (
            retryable
            and attempt < plan.max_retries
            and plan.strategy.should_retry(attempt, plan.max_retries, error)
        ):
            delay = max(0.0, plan.strategy.get_delay(attempt, plan.base_delay))
        context.record_attempt(
            attempt, error, was_retryable=retryable, delay=delay, duration=duration
        )

        if delay is None:
            logger.debug(
                f"Attempt {attempt + 1}/{plan.max_retries + 1} of {context.operation_id} "
                f"failed with {type(error).__name__}, not retrying ({reason})"
            )
            return None

        logger.debug(
            f"Attempt {attempt + 1}/{plan.max_retries + 1} of {context.operation_id} "
            f"failed with {type(error).__name__} ({reason}), retrying in {delay:.2f}s"
        )
        self.callbacks.on_retrying(
            RetryingEvent(
                attempt=attempt + 1,
                max_retries=plan.max_retries,
                delay=delay,
                error=error,
                context=context.snapshot(),
            )
        )
        return delay

    def _succeed(self, plan: RunPlan, attempt: int, value: Any, duration: float) -> RetryResult:
        context = plan.context
        plan.strategy.record_success()
        context.record_attempt(attempt, None, duration=duration)
        if attempt > 0:
            logger.debug(
                f"Operation {context.operation_id} succeeded on attempt "
                f"{attempt + 1}/{plan.max_retries + 1}"
            )
        self.callbacks.on_success(
            SucceededEvent(
                attempt=attempt,
                result=value,
                total_time=context.elapsed(),
                context=context.snapshot(),
            )
        )
        return RetryResult(result=value, exception_history=tuple(context.exception_history))

    def _fail(self, plan: RunPlan, attempt: int, error: Exception) -> RetryResult:
        context = plan.context
        history = context.exception_history
        self.callbacks.on_failure(
            FailedEvent(
                attempt=attempt,
                error=error,
                exception_history=history,
                context=context.snapshot(),
            )
        )
        return RetryResult(error=error, exception_history=tuple(history))

    def _cancel(
        self,
        plan: RunPlan,
        attempt: int,
        cancel_token: CancellationToken,
        last_error: Exception | None,
    ) -> RetryResult:
        reason = cancel_token.reason or "cancellation requested"
        error = RetryCancelledError(
            f"Operation {plan.context.operation_id} cancelled at attempt "
            f"{attempt + 1}: {reason}"
        )
        error.__cause__ = last_error
        logger.debug(str(error))
        return self._fail(plan, attempt, error)
