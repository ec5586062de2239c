r"""Synchronous retry executor.

This module provides the RetryExecutor class that runs a zero-argument
operation with automatic retry logic, exception classification, circuit
breaker integration and lifecycle notifications.
"""

from __future__ import annotations

__all__ = ["RetryExecutor"]

import contextvars
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Any, TypeVar

from aretry.exceptions import AttemptTimeoutError, CircuitOpenError, RetryExhaustedError
from aretry.retry.executor_core import BaseRetryExecutor
from aretry.utils.structured_logging import bind_operation_id, reset_operation_id

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from aretry.callbacks import RetryListener
    from aretry.config import RetryConfig
    from aretry.handlers.manager import ExceptionHandlerManager
    from aretry.result import RetryResult
    from aretry.retry.executor_core import RunPlan
    from aretry.retry.overrides import RetryOverrides
    from aretry.strategies.base import BaseRetryStrategy
    from aretry.utils.cancellation import CancellationToken

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

# Poll interval while waiting for a timed-out attempt under a cancel token
_ABANDONED_POLL_INTERVAL = 0.05


class RetryExecutor(BaseRetryExecutor):
    """Runs operations with automatic retry logic.

    Attempts are strictly sequential and run in the calling thread. A
    plain function cannot be interrupted from the outside, so the
    per-attempt ``timeout`` is only enforced when ``attempt_threads`` is
    true. Each attempt then runs on a single-use worker thread and an
    ``AttemptTimeoutError`` is raised in its place when it takes too
    long. The timed-out attempt keeps running in the background, and the
    next attempt only starts once it has returned.

    The executor orchestrates the following components:
    - BaseRetryStrategy: Calculates delays and decides on continuation
    - RetryDecider: Classifies errors as retryable or terminal
    - CallbackManager: Notifies listeners at lifecycle events

    Args:
        config: Base configuration.
        max_retries: Maximum number of retries.
        base_delay: Base delay in seconds handed to the strategy.
        timeout: Per-attempt timeout in seconds.
        strategy: The retry strategy.
        handler_manager: The exception classification registry.
        listeners: Lifecycle listeners.
        attempt_threads: Whether attempts run on a worker thread so the
            per-attempt timeout can be enforced.

    Example:
        ```pycon
        >>> from aretry import RetryExecutor
        >>> from aretry.strategies import FixedDelayStrategy
        >>> calls = []
        >>> def flaky():
        ...     calls.append(1)
        ...     if len(calls) < 3:
        ...         raise ConnectionError("Connection timed out")
        ...     return "ok"
        ...
        >>> executor = RetryExecutor(max_retries=3, base_delay=0.0)
        >>> result = executor.with_strategy(FixedDelayStrategy()).run(flaky)
        >>> result.value(), len(result.exception_history)
        ('ok', 2)

        ```
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
        attempt_threads: bool = False,
    ) -> None:
        super().__init__(
            config,
            max_retries=max_retries,
            base_delay=base_delay,
            timeout=timeout,
            strategy=strategy,
            handler_manager=handler_manager,
            listeners=listeners,
        )
        self.attempt_threads = attempt_threads

    def run(
        self,
        operation: Callable[[], T],
        additional_patterns: Iterable[str] = (),
        additional_exceptions: Iterable[type[BaseException]] = (),
        *,
        cancel_token: CancellationToken | None = None,
    ) -> RetryResult:
        """Run an operation until it succeeds or fails terminally.

        Args:
            operation: Zero-argument callable.
            additional_patterns: Extra retryable message patterns for
                this run.
            additional_exceptions: Extra retryable error types for this
                run.
            cancel_token: Optional token aborting the run.

        Returns:
            A ``RetryResult`` holding the value or the terminal error.
            Errors raised by the operation never escape, except those
            that are not ``Exception`` subclasses.

        Raises:
            ConfigurationError: If a pattern or error type is invalid.
        """
        return self._run(
            operation, additional_patterns, additional_exceptions, cancel_token, None
        )

    def call(
        self,
        operation: Callable[[], T],
        additional_patterns: Iterable[str] = (),
        additional_exceptions: Iterable[type[BaseException]] = (),
        *,
        cancel_token: CancellationToken | None = None,
    ) -> T:
        """Run an operation and return its value.

        Raises:
            Exception: The terminal error of the run.
        """
        return self.run(
            operation, additional_patterns, additional_exceptions, cancel_token=cancel_token
        ).value()

    def run_item(
        self, work_item: Callable[[], T], *, cancel_token: CancellationToken | None = None
    ) -> RetryResult:
        """Run a work item, applying its own retry overrides if it has any.

        Args:
            work_item: Zero-argument callable, optionally implementing
                ``SupportsRetryOverrides``.
            cancel_token: Optional token aborting the run.

        Returns:
            The ``RetryResult`` of the run.
        """
        return self._run(work_item, (), (), cancel_token, self._item_overrides(work_item))

    def _run(
        self,
        operation: Callable[[], Any],
        additional_patterns: Iterable[str],
        additional_exceptions: Iterable[type[BaseException]],
        cancel_token: CancellationToken | None,
        overrides: RetryOverrides | None,
    ) -> RetryResult:
        plan = self._prepare(additional_patterns, additional_exceptions, overrides)
        token = bind_operation_id(plan.context.operation_id)
        try:
            return self._loop(operation, plan, cancel_token)
        finally:
            reset_operation_id(token)

    def _loop(
        self,
        operation: Callable[[], Any],
        plan: RunPlan,
        cancel_token: CancellationToken | None,
    ) -> RetryResult:
        timeout = plan.timeout if self.attempt_threads else None
        abandoned: list[Future[Any]] = []
        last_error: Exception | None = None
        attempt = 0
        while attempt <= plan.max_retries:
            if abandoned:
                if self._wait_abandoned(abandoned, cancel_token):
                    return self._cancel(plan, attempt, cancel_token, last_error)
                abandoned.clear()
            if cancel_token is not None and cancel_token.cancelled:
                return self._cancel(plan, attempt, cancel_token, last_error)
            try:
                plan.strategy.before_attempt()
            except CircuitOpenError as exc:
                logger.debug(f"Attempt {attempt + 1} of {plan.context.operation_id} refused: {exc}")
                return self._fail(plan, attempt, exc)

            started = time.time()
            try:
                value = self._invoke(operation, timeout, abandoned)
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                delay = self._handle_failure(plan, attempt, exc, time.time() - started)
                if delay is None:
                    return self._fail(plan, attempt, exc)
                if delay > 0:
                    if cancel_token is not None:
                        if cancel_token.wait(delay):
                            return self._cancel(plan, attempt + 1, cancel_token, last_error)
                    else:
                        time.sleep(delay)
                plan.context.next_attempt()
                attempt += 1
                continue
            except BaseException:
                plan.strategy.abort_attempt()
                raise
            return self._succeed(plan, attempt, value, time.time() - started)

        error = last_error or RetryExhaustedError(
            f"Operation {plan.context.operation_id} exhausted its attempts without an error"
        )
        return self._fail(plan, max(0, attempt - 1), error)

    @staticmethod
    def _invoke(
        operation: Callable[[], Any], timeout: float | None, abandoned: list[Future[Any]]
    ) -> Any:
        """Invoke one attempt, on a worker thread if ``timeout`` is set.

        A timed-out attempt's future is appended to ``abandoned``.
        """
        if timeout is None:
            return operation()
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="aretry-attempt")
        try:
            future = pool.submit(contextvars.copy_context().run, operation)
            done, _ = wait([future], timeout=timeout)
            if not done:
                abandoned.append(future)
                raise AttemptTimeoutError(timeout)
            return future.result()
        finally:
            pool.shutdown(wait=False)

    @staticmethod
    def _wait_abandoned(
        abandoned: list[Future[Any]], cancel_token: CancellationToken | None
    ) -> bool:
        """Block until every timed-out attempt has returned.

        Returns:
            ``True`` if the wait was aborted by the cancellation token.
        """
        logger.debug(f"Waiting for {len(abandoned)} timed-out attempt(s) to return")
        if cancel_token is None:
            wait(abandoned)
            return False
        while True:
            _, pending = wait(abandoned, timeout=_ABANDONED_POLL_INTERVAL)
            if not pending:
                return False
            if cancel_token.cancelled:
                return True
