r"""Retry package implementing the retry execution loop.

Public API:
    - RetryExecutor: Synchronous retry executor
    - AsyncRetryExecutor: Asynchronous retry executor
    - RetryDecider: Logic for classifying errors as retryable
    - CallbackManager: Dispatcher of lifecycle events
    - RetryOverrides: Per-work-item retry settings
"""

from __future__ import annotations

__all__ = [
    "AsyncRetryExecutor",
    "BaseRetryExecutor",
    "CallbackManager",
    "RetryDecider",
    "RetryExecutor",
    "RetryOverrides",
    "SupportsRetryOverrides",
]

from aretry.retry.decider import RetryDecider
from aretry.retry.executor import RetryExecutor
from aretry.retry.executor_async import AsyncRetryExecutor
from aretry.retry.executor_core import BaseRetryExecutor
from aretry.retry.manager import CallbackManager
from aretry.retry.overrides import RetryOverrides, SupportsRetryOverrides
