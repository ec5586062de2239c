r"""Hand-off of terminally failed operations to external storage.

The retry engine does not persist anything itself. It builds a
``DeadLetter`` from a failed ``RetryResult`` and hands it to a
``DeadLetterStorage`` implementation provided by the application, e.g.
a database table or a message queue.

Example:
    ```python
    from aretry.dead_letter import DeadLetterQueueHandler

    handler = DeadLetterQueueHandler(storage=MyDatabaseStorage())
    result = executor.run(sync_invoices)
    handler.handle(result, operation="sync_invoices", context={"tenant": 42})
    ```
"""

from __future__ import annotations

__all__ = ["DeadLetter", "DeadLetterQueueHandler", "DeadLetterStorage"]

import logging
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from aretry.context import AttemptRecord
    from aretry.result import RetryResult

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class DeadLetter:
    """Record of a terminally failed operation.

    Attributes:
        operation: Name of the failed operation.
        error_message: Message of the terminal error.
        error_class: Qualified class name of the terminal error.
        error_trace: Formatted traceback of the terminal error.
        exception_history: Serialisable records of every failed attempt.
        context: Arbitrary data supplied by the caller.
        created_at: Creation time, timezone-aware UTC.
        status: Processing status, ``pending`` until handled.
    """

    operation: str
    error_message: str
    error_class: str
    error_trace: str = ""
    exception_history: list[dict[str, Any]] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "pending"

    @classmethod
    def from_error(
        cls,
        error: BaseException,
        operation: str = "",
        exception_history: Iterable[AttemptRecord] = (),
        context: Mapping[str, Any] | None = None,
    ) -> DeadLetter:
        """Create a dead letter from an error and its attempt history."""
        error_type = type(error)
        return cls(
            operation=operation,
            error_message=str(error),
            error_class=f"{error_type.__module__}.{error_type.__qualname__}",
            error_trace="".join(
                traceback.format_exception(error_type, error, error.__traceback__)
            ),
            exception_history=[record.to_dict() for record in exception_history],
            context=dict(context or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable view of the dead letter."""
        return {
            "operation": self.operation,
            "error_message": self.error_message,
            "error_class": self.error_class,
            "error_trace": self.error_trace,
            "exception_history": list(self.exception_history),
            "context": dict(self.context),
            "created_at": self.created_at.isoformat(),
            "status": self.status,
        }


class DeadLetterStorage(ABC):
    """Persistence backend for dead letters.

    Filters accepted by ``retrieve``, ``clear`` and ``count`` are
    ``status``, ``operation``, ``created_before`` and ``created_after``
    (aware datetimes).
    """

    @abstractmethod
    def store(self, dead_letter: DeadLetter) -> Any:
        """Store a dead letter and return its id."""

    @abstractmethod
    def retrieve(
        self, limit: int = 100, filters: Mapping[str, Any] | None = None
    ) -> list[tuple[Any, DeadLetter]]:
        """Return up to ``limit`` ``(id, dead_letter)`` pairs matching ``filters``."""

    @abstractmethod
    def mark_as_processed(self, dead_letter_id: Any, result: Any = None) -> bool:
        """Mark a dead letter as processed."""

    @abstractmethod
    def mark_as_failed(self, dead_letter_id: Any, error: BaseException | str) -> bool:
        """Mark a dead letter as failed to reprocess."""

    @abstractmethod
    def delete(self, dead_letter_id: Any) -> bool:
        """Delete a dead letter."""

    @abstractmethod
    def clear(self, filters: Mapping[str, Any] | None = None) -> int:
        """Delete the dead letters matching ``filters`` and return how many."""

    @abstractmethod
    def count(self, filters: Mapping[str, Any] | None = None) -> int:
        """Count the dead letters matching ``filters``."""


class DeadLetterQueueHandler:
    """Send failed results to a dead-letter storage and reprocess them.

    Args:
        storage: The storage backend.
        should_log: Whether stored dead letters are logged.
        log_level: Level used to log stored dead letters.
        handler: Optional callable notified with ``(dead_letter, id)``
            after a dead letter was stored.
    """

    def __init__(
        self,
        storage: DeadLetterStorage,
        should_log: bool = True,
        log_level: int = logging.WARNING,
        handler: Callable[[DeadLetter, Any], None] | None = None,
    ) -> None:
        self.storage = storage
        self.should_log = should_log
        self.log_level = log_level
        self.handler = handler

    def handle(
        self,
        result: RetryResult,
        operation: str = "",
        context: Mapping[str, Any] | None = None,
    ) -> Any:
        """Store a failed result as a dead letter.

        Args:
            result: The result of a retry run.
            operation: Name of the operation.
            context: Arbitrary data stored with the dead letter.

        Returns:
            The storage id, or None if the result is a success.
        """
        if result.succeeded():
            return None
        dead_letter = result.to_dead_letter(operation=operation, context=context)
        dead_letter_id = self.storage.store(dead_letter)
        if self.should_log:
            logger.log(
                self.log_level,
                f"Operation {operation or '<unnamed>'!s} moved to dead letter queue "
                f"after {len(dead_letter.exception_history)} failed attempt(s): "
                f"{dead_letter.error_class}: {dead_letter.error_message}",
            )
        if self.handler is not None:
            self.handler(dead_letter, dead_letter_id)
        return dead_letter_id

    def process_queue(
        self,
        processor: Callable[[DeadLetter], Any],
        limit: int = 100,
        filters: Mapping[str, Any] | None = None,
    ) -> dict[str, int]:
        """Reprocess pending dead letters.

        Each dead letter is passed to ``processor``. Dead letters for which
        it returns are marked processed, those for which it raises are
        marked failed.

        Args:
            processor: Callable reprocessing one dead letter.
            limit: Maximum number of dead letters to process.
            filters: Storage filters. Defaults to ``{"status": "pending"}``.

        Returns:
            Counts of ``processed`` and ``failed`` dead letters.
        """
        criteria = {"status": "pending"} if filters is None else dict(filters)
        stats = {"processed": 0, "failed": 0}
        for dead_letter_id, dead_letter in self.storage.retrieve(limit=limit, filters=criteria):
            try:
                outcome = processor(dead_letter)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Failed to reprocess dead letter {dead_letter_id!r}: {exc}")
                self.storage.mark_as_failed(dead_letter_id, exc)
                stats["failed"] += 1
            else:
                self.storage.mark_as_processed(dead_letter_id, outcome)
                stats["processed"] += 1
        return stats
