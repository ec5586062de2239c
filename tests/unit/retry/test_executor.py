r"""Unit tests for RetryExecutor."""

from __future__ import annotations

import threading
import time
from unittest.mock import Mock, call

import pytest

from aretry import (
    AttemptTimeoutError,
    CancellationToken,
    CircuitOpenError,
    ConfigurationError,
    RetryCancelledError,
    RetryConfig,
    RetryExecutor,
    RetryOverrides,
)
from aretry.callbacks import CallbackListener
from aretry.handlers import ExceptionHandlerManager
from aretry.strategies import (
    CircuitBreakerStrategy,
    CircuitState,
    ExponentialBackoffStrategy,
    FixedDelayStrategy,
    InMemoryBreakerStateStore,
)
from aretry.utils.structured_logging import get_operation_id


class QuotaExceededError(Exception):
    pass


def flaky(failures: list[Exception], value: object = "success") -> Mock:
    """Create an operation raising the given errors, then returning
    ``value``."""
    return Mock(side_effect=[*failures, value])


@pytest.fixture
def executor() -> RetryExecutor:
    return RetryExecutor(max_retries=3, base_delay=0.0, timeout=None).with_strategy(
        FixedDelayStrategy()
    )


class RecordingListener:
    def __init__(self) -> None:
        self.events = []

    def on_retrying(self, event: object) -> None:
        self.events.append(("retrying", event))

    def on_success(self, event: object) -> None:
        self.events.append(("success", event))

    def on_failure(self, event: object) -> None:
        self.events.append(("failure", event))


##################################################
#     Tests for RetryExecutor success path       #
##################################################


def test_run_success_first_attempt(executor: RetryExecutor) -> None:
    """Test a successful operation without retries."""
    operation = Mock(return_value=42)
    result = executor.run(operation)
    assert result.succeeded()
    assert result.value() == 42
    assert result.exception_history == ()
    assert executor.last_context.total_attempts == 1
    operation.assert_called_once_with()


def test_run_retries_transient_errors_then_succeeds(executor: RetryExecutor) -> None:
    """Test that two transient failures are retried before the
    success."""
    listener = RecordingListener()
    executor.add_listener(listener)
    operation = flaky([Exception("Connection timed out"), Exception("Connection timed out")])

    result = executor.run(operation)

    assert result.value() == "success"
    assert len(result.exception_history) == 2
    assert all(record.was_retryable for record in result.exception_history)
    assert [record.attempt for record in result.exception_history] == [0, 1]
    assert operation.call_count == 3
    assert executor.last_context.total_attempts == 3
    kind, success = listener.events[-1]
    assert kind == "success"
    assert success.attempt == 2
    assert success.result == "success"


def test_run_non_retryable_error_single_attempt(executor: RetryExecutor) -> None:
    """Test that a non-retryable error ends the run at once."""
    error = ValueError("Non-retryable error occurred")
    operation = Mock(side_effect=error)
    result = executor.run(operation)
    assert result.failed()
    assert result.error is error
    assert len(result.exception_history) == 1
    assert not result.exception_history[0].was_retryable
    assert result.exception_history[0].delay is None
    operation.assert_called_once_with()


def test_run_max_retries_zero_is_one_attempt() -> None:
    """Test that max_retries=0 performs exactly one attempt."""
    operation = Mock(side_effect=ConnectionError("refused"))
    executor = RetryExecutor(max_retries=0, base_delay=0.0, timeout=None)
    result = executor.run(operation)
    assert result.failed()
    assert operation.call_count == 1
    assert len(result.exception_history) == 1
    assert result.exception_history[0].was_retryable


def test_run_exhausts_retries(executor: RetryExecutor) -> None:
    """Test that a persistent transient error is retried max_retries
    times."""
    errors = [ConnectionError(f"refused {i}") for i in range(4)]
    operation = Mock(side_effect=errors)
    result = executor.run(operation)
    assert result.failed()
    assert result.error is errors[-1]
    assert operation.call_count == 4
    assert [record.error for record in result.exception_history] == errors
    assert result.exception_history[-1].delay is None
    assert executor.last_context.total_attempts == 4


def test_run_does_not_catch_base_exceptions(executor: RetryExecutor) -> None:
    """Test that errors outside Exception propagate unchanged."""
    with pytest.raises(KeyboardInterrupt):
        executor.run(Mock(side_effect=KeyboardInterrupt))


def test_run_waits_with_strategy_delays(mock_sleep: Mock) -> None:
    """Test that the waits follow the exponential backoff delays."""
    operation = Mock(side_effect=ConnectionError("refused"))
    executor = RetryExecutor(max_retries=3, base_delay=1.0, timeout=None)
    executor.run(operation)
    assert mock_sleep.call_args_list == [call(1.0), call(2.0), call(4.0)]
    assert executor.last_context.total_delay == 7.0


def test_run_zero_delay_does_not_sleep(executor: RetryExecutor, mock_sleep: Mock) -> None:
    """Test that a zero delay skips the wait."""
    executor.run(flaky([ConnectionError("refused")]))
    mock_sleep.assert_not_called()


def test_run_negative_delay_is_clamped(mock_sleep: Mock) -> None:
    """Test that a negative strategy delay does not wait."""
    strategy = Mock(wraps=FixedDelayStrategy())
    strategy.get_delay.return_value = -5.0
    executor = RetryExecutor(max_retries=1, timeout=None, strategy=strategy)
    result = executor.run(flaky([ConnectionError("refused")]))
    assert result.succeeded()
    assert result.exception_history[0].delay == 0.0
    mock_sleep.assert_not_called()


def test_call_returns_value(executor: RetryExecutor) -> None:
    """Test that call returns the value of the operation."""
    assert executor.call(flaky([ConnectionError("refused")], value=7)) == 7


def test_call_raises_terminal_error(executor: RetryExecutor) -> None:
    """Test that call re-raises the terminal error unchanged."""
    with pytest.raises(ValueError, match=r"bad input"):
        executor.call(Mock(side_effect=ValueError("bad input")))


##################################################
#     Tests for classification options           #
##################################################


def test_additional_patterns_per_run(executor: RetryExecutor) -> None:
    """Test extra retryable patterns for a single run."""
    result = executor.run(
        flaky([QuotaExceededError("quota exceeded")]), additional_patterns=["quota exceeded"]
    )
    assert result.succeeded()
    assert executor.run(Mock(side_effect=QuotaExceededError("quota exceeded"))).failed()


def test_additional_exceptions_per_run(executor: RetryExecutor) -> None:
    """Test extra retryable exception types for a single run."""
    result = executor.run(
        flaky([QuotaExceededError("over")]), additional_exceptions=[QuotaExceededError]
    )
    assert result.succeeded()


def test_custom_handler_manager() -> None:
    """Test an executor with its own classification rules."""
    manager = ExceptionHandlerManager(include_defaults=False, register_defaults=False)
    executor = RetryExecutor(
        max_retries=3, base_delay=0.0, timeout=None, handler_manager=manager
    )
    operation = Mock(side_effect=ConnectionError("Connection timed out"))
    assert executor.run(operation).failed()
    operation.assert_called_once_with()


def test_retry_if_always_false_never_retries(executor: RetryExecutor) -> None:
    """Test that a rejecting predicate disables retries."""
    operation = Mock(side_effect=ConnectionError("refused"))
    result = executor.retry_if(lambda error, info: False).run(operation)
    assert result.failed()
    operation.assert_called_once_with()
    assert not result.exception_history[0].was_retryable


def test_retry_if_receives_attempt_info(executor: RetryExecutor) -> None:
    """Test the information handed to the predicate."""
    seen = []

    def predicate(error: Exception, info: dict) -> bool:
        seen.append((info["attempt"], info["remaining_attempts"], len(info["exception_history"])))
        return True

    executor.retry_if(predicate).run(
        flaky([ConnectionError("refused"), ConnectionError("refused")])
    )
    assert seen == [(0, 3, 0), (1, 2, 1)]


def test_retry_unless(executor: RetryExecutor) -> None:
    """Test that retry_unless negates the predicate."""
    executor.retry_unless(lambda error, info: "permanent" in str(error))
    assert executor.run(flaky([ConnectionError("transient")])).succeeded()
    operation = Mock(side_effect=ConnectionError("permanent outage"))
    assert executor.run(operation).failed()
    operation.assert_called_once_with()


def test_invalid_additional_pattern(executor: RetryExecutor) -> None:
    """Test that an invalid pattern raises ConfigurationError."""
    with pytest.raises(ConfigurationError, match=r"Invalid retryable pattern"):
        executor.run(Mock(), additional_patterns=["(unclosed"])


##################################################
#     Tests for configuration                    #
##################################################


def test_executor_from_config() -> None:
    """Test that the configuration provides the defaults."""
    config = RetryConfig(max_retries=1, base_delay=0.0, timeout=None, strategy="fixed-delay")
    executor = RetryExecutor(config)
    assert isinstance(executor.strategy, FixedDelayStrategy)
    operation = Mock(side_effect=ConnectionError("refused"))
    executor.run(operation)
    assert operation.call_count == 2


def test_executor_default_strategy() -> None:
    """Test that the default strategy is exponential backoff."""
    assert isinstance(RetryExecutor().strategy, ExponentialBackoffStrategy)


def test_executor_invalid_configuration() -> None:
    """Test that invalid values raise ConfigurationError."""
    with pytest.raises(ConfigurationError, match=r"max_retries must be >= 0"):
        RetryExecutor(max_retries=-1)
    with pytest.raises(ConfigurationError, match=r"base_delay must be >= 0"):
        RetryExecutor(base_delay=-0.5)
    with pytest.raises(ConfigurationError, match=r"timeout must be > 0"):
        RetryExecutor().with_timeout(0)


def test_fluent_setters(executor: RetryExecutor) -> None:
    """Test that the fluent setters return the executor."""
    strategy = FixedDelayStrategy()
    assert executor.with_strategy(strategy) is executor
    assert executor.with_max_retries(5).config.max_retries == 5
    assert executor.with_base_delay(0.25).config.base_delay == 0.25
    assert executor.with_timeout(2.0).config.timeout == 2.0
    assert executor.with_timeout(None).config.timeout is None
    assert executor.strategy is strategy


def test_dispatch_events_disabled() -> None:
    """Test that disabled notifications are not dispatched."""
    listener = Mock()
    config = RetryConfig(max_retries=1, base_delay=0.0, timeout=None, dispatch_events=False)
    RetryExecutor(config, listeners=[listener]).run(flaky([ConnectionError("refused")]))
    listener.on_retrying.assert_not_called()
    listener.on_success.assert_not_called()


##################################################
#     Tests for overrides                        #
##################################################


class SyncInvoices:
    def __init__(self, operation: Mock) -> None:
        self.operation = operation

    def retry_overrides(self) -> RetryOverrides:
        return RetryOverrides(max_retries=1, additional_patterns=("quota exceeded",))

    def __call__(self) -> object:
        return self.operation()


def test_run_item_applies_overrides(executor: RetryExecutor) -> None:
    """Test that a work item's overrides apply to its run only."""
    operation = Mock(side_effect=QuotaExceededError("quota exceeded"))
    result = executor.run_item(SyncInvoices(operation))
    assert result.failed()
    assert operation.call_count == 2
    assert executor.config.max_retries == 3


def test_run_item_plain_callable(executor: RetryExecutor) -> None:
    """Test that plain callables run with the executor's settings."""
    calls = []

    def operation() -> str:
        calls.append(1)
        if len(calls) == 1:
            raise ConnectionError("refused")
        return "done"

    assert executor.run_item(operation).value() == "done"
    assert len(calls) == 2


def test_with_overrides(executor: RetryExecutor) -> None:
    """Test overrides applied to every following run."""
    executor.with_overrides(
        RetryOverrides(max_retries=1, additional_exceptions=(QuotaExceededError,))
    )
    operation = Mock(side_effect=QuotaExceededError("over"))
    executor.run(operation)
    assert operation.call_count == 2


##################################################
#     Tests for notifications                    #
##################################################


def test_event_order_on_success(executor: RetryExecutor) -> None:
    """Test retrying events followed by a single success event."""
    listener = RecordingListener()
    executor.add_listener(listener)
    executor.run(flaky([ConnectionError("refused"), ConnectionError("refused")]))
    assert [kind for kind, _ in listener.events] == ["retrying", "retrying", "success"]
    assert [event.attempt for _, event in listener.events[:2]] == [1, 2]
    assert listener.events[0][1].max_retries == 3
    assert listener.events[0][1].delay == 0.0


def test_event_order_on_failure(executor: RetryExecutor) -> None:
    """Test retrying events followed by exactly one failure event."""
    listener = RecordingListener()
    executor.add_listener(listener)
    result = executor.run(Mock(side_effect=ConnectionError("refused")))
    assert [kind for kind, _ in listener.events] == ["retrying"] * 3 + ["failure"]
    failure = listener.events[-1][1]
    assert failure.error is result.error
    assert failure.attempt == 3
    assert len(failure.exception_history) == 4


def test_events_hold_context_snapshots(executor: RetryExecutor) -> None:
    """Test that each event keeps the context as it was when emitted."""
    listener = RecordingListener()
    executor.add_listener(listener)
    executor.run(flaky([ConnectionError("refused"), ConnectionError("refused")]))
    first, second, success = (event for _, event in listener.events)
    assert first.context is not executor.last_context
    assert first.context.operation_id == executor.last_context.operation_id
    assert first.context.summary()["total_exceptions"] == 1
    assert first.context.total_attempts == 1
    assert first.summary()["metrics"] == first.context.metrics
    assert second.context.summary()["total_exceptions"] == 2
    assert success.context.total_attempts == 3
    assert executor.last_context.summary()["total_exceptions"] == 2


def test_listener_errors_do_not_change_outcome(
    executor: RetryExecutor, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that listener errors are logged and swallowed."""
    broken = Mock(side_effect=RuntimeError("listener broke"))
    executor.add_listener(CallbackListener(on_retrying=broken, on_success=broken))
    with caplog.at_level("WARNING"):
        result = executor.run(flaky([ConnectionError("refused")]))
    assert result.value() == "success"
    assert broken.call_count == 2
    assert "Error in retry listener" in caplog.text


##################################################
#     Tests for strategies and context           #
##################################################


def test_strategy_hooks_are_called(executor: RetryExecutor) -> None:
    """Test the lifecycle hooks invoked on the strategy."""
    strategy = Mock(wraps=FixedDelayStrategy())
    error = ConnectionError("refused")
    executor.with_strategy(strategy).run(flaky([error]))
    strategy.start.assert_called_once_with(executor.last_context)
    assert strategy.before_attempt.call_count == 2
    strategy.record_failure.assert_called_once_with(error)
    strategy.record_success.assert_called_once_with()
    strategy.should_retry.assert_called_once_with(0, 3, error)


def test_strategy_can_stop_retries(executor: RetryExecutor) -> None:
    """Test that a refusing strategy ends the run."""
    strategy = Mock(wraps=FixedDelayStrategy())
    strategy.should_retry.return_value = False
    operation = Mock(side_effect=ConnectionError("refused"))
    result = executor.with_strategy(strategy).run(operation)
    assert result.failed()
    operation.assert_called_once_with()
    assert result.exception_history[0].was_retryable


def test_operation_id_is_bound_during_run(executor: RetryExecutor) -> None:
    """Test that the operation id is visible to the operation."""
    seen = []
    executor.run(lambda: seen.append(get_operation_id()))
    assert seen == [executor.last_context.operation_id]
    assert get_operation_id() is None


def test_metadata_is_attached_to_next_run(executor: RetryExecutor) -> None:
    """Test that metadata is consumed by the next run."""
    executor.with_metadata({"tenant": 42}).run(Mock(return_value=None))
    assert executor.last_context.metadata == {"tenant": 42}
    executor.run(Mock(return_value=None))
    assert executor.last_context.metadata == {}


def test_context_metrics_after_run(executor: RetryExecutor) -> None:
    """Test the metrics recorded for a run."""
    executor.run(flaky([ConnectionError("refused")]))
    summary = executor.last_context.summary()
    assert summary["total_attempts"] == 2
    assert summary["total_exceptions"] == 1
    assert summary["retryable_exceptions"] == 1
    assert summary["metrics"]["min_attempt_duration"] >= 0.0


##################################################
#     Tests for circuit breaker integration      #
##################################################


def test_open_circuit_refuses_without_invoking(executor: RetryExecutor) -> None:
    """Test that an open circuit ends the run without calling the
    operation."""
    breaker = CircuitBreakerStrategy(
        FixedDelayStrategy(), failure_threshold=1, key="exec-open", store=InMemoryBreakerStateStore()
    )
    breaker.record_failure(ConnectionError("refused"))
    listener = RecordingListener()
    operation = Mock()
    result = executor.with_strategy(breaker).add_listener(listener).run(operation)
    assert result.failed()
    assert isinstance(result.error, CircuitOpenError)
    assert result.exception_history == ()
    operation.assert_not_called()
    assert [kind for kind, _ in listener.events] == ["failure"]


def test_circuit_opening_during_run_stops_retries(executor: RetryExecutor) -> None:
    """Test that reaching the failure threshold stops the retries."""
    breaker = CircuitBreakerStrategy(
        FixedDelayStrategy(), failure_threshold=2, key="exec-run", store=InMemoryBreakerStateStore()
    )
    operation = Mock(side_effect=ConnectionError("refused"))
    result = executor.with_max_retries(5).with_strategy(breaker).run(operation)
    assert result.failed()
    assert operation.call_count == 2
    assert isinstance(result.error, ConnectionError)


def test_interrupted_half_open_attempt_releases_circuit() -> None:
    """Test that a BaseException escaping a probe attempt frees the
    probe slot."""
    store = InMemoryBreakerStateStore()
    breaker = CircuitBreakerStrategy(
        FixedDelayStrategy(), failure_threshold=1, reset_timeout=0.01, key="exec-int", store=store
    )
    breaker.record_failure(ConnectionError("refused"))
    time.sleep(0.02)
    executor = RetryExecutor(max_retries=0, timeout=None, strategy=breaker)
    with pytest.raises(KeyboardInterrupt):
        executor.run(Mock(side_effect=KeyboardInterrupt))
    assert breaker.state == CircuitState.HALF_OPEN
    assert not store.load("exec-int").probe_in_flight
    assert executor.run(Mock(return_value="ok")).value() == "ok"
    assert breaker.state == CircuitState.CLOSED


##################################################
#     Tests for cancellation                     #
##################################################


def test_cancelled_before_start(executor: RetryExecutor) -> None:
    """Test that a cancelled token prevents any attempt."""
    token = CancellationToken()
    token.cancel("shutting down")
    operation = Mock()
    result = executor.run(operation, cancel_token=token)
    assert isinstance(result.error, RetryCancelledError)
    assert "shutting down" in str(result.error)
    operation.assert_not_called()


def test_cancel_during_backoff_wait() -> None:
    """Test that cancelling aborts a pending wait."""
    token = CancellationToken()
    error = ConnectionError("refused")

    def operation() -> None:
        token.cancel("stop")
        raise error

    listener = RecordingListener()
    executor = RetryExecutor(
        max_retries=3, base_delay=30.0, timeout=None, strategy=FixedDelayStrategy()
    )
    result = executor.add_listener(listener).run(operation, cancel_token=token)
    assert isinstance(result.error, RetryCancelledError)
    assert result.error.__cause__ is error
    assert len(result.exception_history) == 1
    assert [kind for kind, _ in listener.events] == ["retrying", "failure"]


def test_cancel_from_another_thread() -> None:
    """Test cancelling a run blocked in a long wait from another
    thread."""
    token = CancellationToken()
    executor = RetryExecutor(
        max_retries=3, base_delay=30.0, timeout=None, strategy=FixedDelayStrategy()
    )
    timer = threading.Timer(0.05, token.cancel)
    timer.start()
    try:
        result = executor.run(Mock(side_effect=ConnectionError("refused")), cancel_token=token)
    finally:
        timer.cancel()
    assert isinstance(result.error, RetryCancelledError)


##################################################
#     Tests for per-attempt timeouts             #
##################################################


def test_attempts_run_in_calling_thread() -> None:
    """Test that attempts run in the calling thread by default."""
    executor = RetryExecutor()
    assert executor.config.timeout == 30.0
    result = executor.run(threading.current_thread)
    assert result.value() is threading.current_thread()


def test_timeout_not_enforced_without_attempt_threads() -> None:
    """Test that the timeout is ignored for inline attempts."""
    executor = RetryExecutor(max_retries=0, timeout=0.01)
    result = executor.run(lambda: time.sleep(0.05) or "slow")
    assert result.value() == "slow"


def test_attempt_timeout() -> None:
    """Test that a slow attempt fails with AttemptTimeoutError."""
    release = threading.Event()
    executor = RetryExecutor(max_retries=0, timeout=0.05, attempt_threads=True)
    try:
        result = executor.run(lambda: release.wait(5.0))
    finally:
        release.set()
    assert isinstance(result.error, AttemptTimeoutError)
    assert result.error.timeout == 0.05
    assert result.exception_history[0].was_retryable


def test_attempt_timeout_is_retried() -> None:
    """Test that a timed-out attempt is retried like any transient
    error."""
    calls = []

    def operation() -> str:
        calls.append(1)
        if len(calls) == 1:
            time.sleep(0.2)
        return "late success"

    executor = RetryExecutor(
        max_retries=1,
        base_delay=0.0,
        timeout=0.05,
        strategy=FixedDelayStrategy(),
        attempt_threads=True,
    )
    result = executor.run(operation)
    assert result.value() == "late success"
    assert isinstance(result.exception_history[0].error, AttemptTimeoutError)
    assert len(calls) == 2


def test_timed_out_attempts_never_overlap() -> None:
    """Test that the next attempt waits for a timed-out attempt to
    return."""
    lock = threading.Lock()
    state = {"running": 0, "peak": 0}

    def operation() -> None:
        with lock:
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
        try:
            time.sleep(0.2)
        finally:
            with lock:
                state["running"] -= 1

    executor = RetryExecutor(
        max_retries=2,
        base_delay=0.0,
        timeout=0.05,
        strategy=FixedDelayStrategy(),
        attempt_threads=True,
    )
    result = executor.run(operation)
    assert isinstance(result.error, AttemptTimeoutError)
    assert len(result.exception_history) == 3
    assert state["peak"] == 1


def test_cancel_while_waiting_for_timed_out_attempt() -> None:
    """Test that cancelling aborts the wait for a timed-out attempt."""
    token = CancellationToken()
    release = threading.Event()
    executor = RetryExecutor(
        max_retries=3,
        base_delay=0.0,
        timeout=0.05,
        strategy=FixedDelayStrategy(),
        attempt_threads=True,
    )
    timer = threading.Timer(0.2, token.cancel)
    timer.start()
    try:
        result = executor.run(lambda: release.wait(5.0), cancel_token=token)
    finally:
        timer.cancel()
        release.set()
    assert isinstance(result.error, RetryCancelledError)
    assert len(result.exception_history) == 1


def test_attempt_with_timeout_keeps_operation_id() -> None:
    """Test that the worker thread sees the operation id."""
    executor = RetryExecutor(max_retries=0, timeout=5.0, attempt_threads=True)
    result = executor.run(get_operation_id)
    assert result.value() == executor.last_context.operation_id
