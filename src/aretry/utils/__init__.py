r"""Contain utility functions."""

from __future__ import annotations

__all__ = [
    "CancellationToken",
    "iter_exception_chain",
    "parse_rate_limit_reset",
    "parse_retry_after",
    "parse_retry_in",
]

from aretry.utils.cancellation import CancellationToken
from aretry.utils.chain import iter_exception_chain
from aretry.utils.retry_after import parse_rate_limit_reset, parse_retry_after, parse_retry_in
