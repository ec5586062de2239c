r"""Structured logging utilities for machine-readable log output.

This module provides a JSON formatter and helpers that tag every record
emitted during a retry run with the run's operation id. The executors
set the operation id for the duration of a run, so log aggregation
systems can group all attempts of one operation together.

The structured logging system is opt-in and can be enabled by configuring
Python's logging system to use the provided formatter.

Example:
    ```python
    import logging
    from aretry.utils.structured_logging import StructuredFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    logger = logging.getLogger("aretry")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    ```
"""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "bind_operation_id",
    "get_operation_id",
    "log_structured",
    "reset_operation_id",
]

import contextvars
import json
import logging
import time
from typing import Any

# Operation id of the retry run executing in the current context
_operation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation_id", default=None
)

_RESERVED_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "msecs",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "sinfo",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)


def get_operation_id() -> str | None:
    """Get the operation id of the current retry run.

    Returns:
        The operation id, or None outside of a run.

    Example:
        ```pycon
        >>> from aretry.utils.structured_logging import get_operation_id
        >>> get_operation_id() is None
        True

        ```
    """
    return _operation_id.get()


def bind_operation_id(operation_id: str | None) -> contextvars.Token[str | None]:
    """Bind an operation id to the current context.

    Args:
        operation_id: The operation id to bind.

    Returns:
        A token to pass to ``reset_operation_id`` once the run ends.

    Example:
        ```pycon
        >>> from aretry.utils.structured_logging import (
        ...     bind_operation_id,
        ...     get_operation_id,
        ...     reset_operation_id,
        ... )
        >>> token = bind_operation_id("retry_abc")
        >>> get_operation_id()
        'retry_abc'
        >>> reset_operation_id(token)
        >>> get_operation_id() is None
        True

        ```
    """
    return _operation_id.set(operation_id)


def reset_operation_id(token: contextvars.Token[str | None]) -> None:
    """Restore the operation id that was bound before ``token`` was created."""
    _operation_id.reset(token)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Standard fields in the JSON output are ``timestamp`` (ISO 8601),
    ``level``, ``logger``, ``message``, ``module``, ``function``,
    ``line``, ``thread`` and ``process``. The ``operation_id`` field is
    added while a retry run is executing, and any fields passed with
    the ``extra`` parameter of a logging call are preserved.

    Example:
        ```pycon
        >>> import logging
        >>> from io import StringIO
        >>> from aretry.utils.structured_logging import StructuredFormatter
        >>> stream = StringIO()
        >>> handler = logging.StreamHandler(stream)
        >>> handler.setFormatter(StructuredFormatter())
        >>> logger = logging.getLogger("test_logger")
        >>> logger.addHandler(handler)
        >>> logger.setLevel(logging.INFO)
        >>> logger.info("Test message", extra={"attempt": 2})
        >>> output = stream.getvalue()
        >>> "Test message" in output
        True
        >>> '"attempt": 2' in output
        True

        ```
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
            "process": record.process,
        }

        operation_id = get_operation_id()
        if operation_id is not None:
            log_data["operation_id"] = operation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_FIELDS:
                log_data[key] = value

        return json.dumps(log_data, default=str)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: ARG002, N802
        """Format timestamp as ISO 8601 with millisecond precision.

        Args:
            record: The log record.
            datefmt: Optional date format (ignored, always uses ISO 8601).

        Returns:
            ISO 8601 formatted timestamp.
        """
        return (
            time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            + f".{int(record.msecs):03d}Z"
        )


def log_structured(
    logger: logging.Logger,
    level: int,
    message: str,
    **extra: Any,
) -> None:
    """Log a message with structured data.

    The extra fields will be included in JSON output when using
    ``StructuredFormatter``.

    Args:
        logger: Logger to use.
        level: Log level (e.g., logging.INFO).
        message: Log message.
        **extra: Additional structured fields to include in the log.

    Example:
        ```pycon
        >>> import logging
        >>> from io import StringIO
        >>> from aretry.utils.structured_logging import (
        ...     StructuredFormatter,
        ...     log_structured,
        ... )
        >>> stream = StringIO()
        >>> handler = logging.StreamHandler(stream)
        >>> handler.setFormatter(StructuredFormatter())
        >>> logger = logging.getLogger("test_structured")
        >>> logger.addHandler(handler)
        >>> logger.setLevel(logging.DEBUG)
        >>> log_structured(logger, logging.INFO, "Retrying", attempt=1, delay=0.5)
        >>> "Retrying" in stream.getvalue()
        True

        ```
    """
    logger.log(level, message, extra=extra)
