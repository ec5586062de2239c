r"""Asynchronous retry executor.

This module provides the AsyncRetryExecutor class that runs async
operations with automatic retry logic. Waits between attempts suspend
only the calling task.
"""

from __future__ import annotations

__all__ = ["AsyncRetryExecutor"]

import asyncio
import inspect
import logging
import time
from typing import TYPE_CHECKING, Any

from aretry.exceptions import AttemptTimeoutError, CircuitOpenError, RetryExhaustedError
from aretry.retry.executor_core import BaseRetryExecutor
from aretry.utils.structured_logging import bind_operation_id, reset_operation_id

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from aretry.result import RetryResult
    from aretry.retry.executor_core import RunPlan
    from aretry.retry.overrides import RetryOverrides
    from aretry.utils.cancellation import CancellationToken

logger: logging.Logger = logging.getLogger(__name__)


class _AttemptCancelledError(Exception):
    pass


class AsyncRetryExecutor(BaseRetryExecutor):
    """Runs async operations with automatic retry logic.

    The operation is a zero-argument callable returning an awaitable.
    Plain callables returning a value are accepted too and run inline.
    The per-attempt timeout races the attempt against the clock with
    ``asyncio.wait`` and cancels the attempt when it expires. A
    ``CancellationToken`` aborts both the in-flight attempt and a
    pending backoff wait.

    Note:
        This executor uses asyncio.sleep() for backoff delays, allowing
        other tasks to run during retry waits. Listeners are invoked
        synchronously and should be fast.

    Example:
        ```pycon
        >>> import asyncio
        >>> from aretry import AsyncRetryExecutor
        >>> async def fetch():
        ...     return 42
        ...
        >>> asyncio.run(AsyncRetryExecutor().call(fetch))
        42

        ```
    """

    async def run(
        self,
        operation: Callable[[], Any],
        additional_patterns: Iterable[str] = (),
        additional_exceptions: Iterable[type[BaseException]] = (),
        *,
        cancel_token: CancellationToken | None = None,
    ) -> RetryResult:
        """Run an async operation until it succeeds or fails terminally.

        Args:
            operation: Zero-argument callable returning an awaitable.
            additional_patterns: Extra retryable message patterns for
                this run.
            additional_exceptions: Extra retryable error types for this
                run.
            cancel_token: Optional token aborting the run.

        Returns:
            A ``RetryResult`` holding the value or the terminal error.
        """
        return await self._run(
            operation, additional_patterns, additional_exceptions, cancel_token, None
        )

    async def call(
        self,
        operation: Callable[[], Any],
        additional_patterns: Iterable[str] = (),
        additional_exceptions: Iterable[type[BaseException]] = (),
        *,
        cancel_token: CancellationToken | None = None,
    ) -> Any:
        """Run an async operation and return its value.

        Raises:
            Exception: The terminal error of the run.
        """
        result = await self.run(
            operation, additional_patterns, additional_exceptions, cancel_token=cancel_token
        )
        return result.value()

    async def run_item(
        self, work_item: Callable[[], Any], *, cancel_token: CancellationToken | None = None
    ) -> RetryResult:
        """Run a work item, applying its own retry overrides if it has any."""
        return await self._run(work_item, (), (), cancel_token, self._item_overrides(work_item))

    async def _run(
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
            return await self._loop(operation, plan, cancel_token)
        finally:
            reset_operation_id(token)

    async def _loop(
        self,
        operation: Callable[[], Any],
        plan: RunPlan,
        cancel_token: CancellationToken | None,
    ) -> RetryResult:
        last_error: Exception | None = None
        attempt = 0
        while attempt <= plan.max_retries:
            if cancel_token is not None and cancel_token.cancelled:
                return self._cancel(plan, attempt, cancel_token, last_error)
            try:
                plan.strategy.before_attempt()
            except CircuitOpenError as exc:
                logger.debug(f"Attempt {attempt + 1} of {plan.context.operation_id} refused: {exc}")
                return self._fail(plan, attempt, exc)

            started = time.time()
            try:
                value = await self._invoke(operation, plan.timeout, cancel_token)
            except _AttemptCancelledError:
                plan.strategy.abort_attempt()
                return self._cancel(plan, attempt, cancel_token, last_error)
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                delay = self._handle_failure(plan, attempt, exc, time.time() - started)
                if delay is None:
                    return self._fail(plan, attempt, exc)
                if delay > 0 and await self._sleep(delay, cancel_token):
                    return self._cancel(plan, attempt + 1, cancel_token, last_error)
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
    async def _invoke(
        operation: Callable[[], Any],
        timeout: float | None,
        cancel_token: CancellationToken | None,
    ) -> Any:
        result = operation()
        if not inspect.isawaitable(result):
            return result
        if timeout is None and cancel_token is None:
            return await result

        task = asyncio.ensure_future(result)
        waiters: set[asyncio.Future[Any]] = {task}
        cancelled, remove = _cancellation_future(cancel_token)
        if cancelled is not None:
            waiters.add(cancelled)
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            remove()
            if cancelled is not None:
                cancelled.cancel()

        if task in done:
            return task.result()
        task.cancel()
        await asyncio.wait({task})
        if cancelled is not None and cancelled in done:
            raise _AttemptCancelledError
        raise AttemptTimeoutError(timeout)

    @staticmethod
    async def _sleep(delay: float, cancel_token: CancellationToken | None) -> bool:
        """Wait for ``delay`` seconds.

        Returns:
            ``True`` if the wait was aborted by the cancellation token.
        """
        if cancel_token is None:
            await asyncio.sleep(delay)
            return False
        cancelled, remove = _cancellation_future(cancel_token)
        try:
            done, _ = await asyncio.wait({cancelled}, timeout=delay)
        finally:
            remove()
            cancelled.cancel()
        return bool(done)


def _cancellation_future(
    cancel_token: CancellationToken | None,
) -> tuple[asyncio.Future[None] | None, Callable[[], None]]:
    """Create a future resolved when the token is cancelled."""
    if cancel_token is None:
        return None, lambda: None
    loop = asyncio.get_running_loop()
    future: asyncio.Future[None] = loop.create_future()

    def resolve() -> None:
        if not future.done():
            future.set_result(None)

    remove = cancel_token.add_callback(lambda: loop.call_soon_threadsafe(resolve))
    return future, remove
