from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import pytest

from aretry.strategies import RateLimitStrategy
from aretry.strategies.circuit_breaker import DEFAULT_STORE

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture
def mock_sleep() -> Generator[Mock, None, None]:
    """Patch time.sleep to make tests run faster."""
    with patch("time.sleep", return_value=None) as mock:
        yield mock


@pytest.fixture
def mock_asleep() -> Generator[Mock, None, None]:
    """Patch asyncio.sleep to make tests run faster."""
    with patch("asyncio.sleep", return_value=None) as mock:
        yield mock


@pytest.fixture
def mock_callback() -> Mock:
    """Create a mock callback function for testing callbacks.

    Returns:
        A Mock object that can be used as a callback function.
    """
    return Mock()


@pytest.fixture(autouse=True)
def _reset_shared_state() -> Generator[None, None, None]:
    """Forget the process-wide breaker and rate limit state between
    tests."""
    yield
    DEFAULT_STORE.clear()
    RateLimitStrategy.reset_all()
