r"""Core shared logic for the retry executors.

This module contains the parameter validation shared by the
configuration objects and the executors.
"""

from __future__ import annotations

__all__ = ["validate_circuit_params", "validate_retry_params", "validate_timeout"]

from aretry.core.validation import (
    validate_circuit_params,
    validate_retry_params,
    validate_timeout,
)
