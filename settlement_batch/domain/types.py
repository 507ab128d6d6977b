"""
settlement_batch.domain.types -- frozen dataclasses for bulk operations.

Frozen dataclasses with enum status fields and tuples for immutable
collections.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class BulkOperation(str, Enum):
    """Lifecycle operations that can be applied to many meetings at once."""

    COMPLETE = "complete"
    CANCEL = "cancel"
    UPDATE_STATUS = "update_status"
    RECALCULATE = "recalculate"
    DELETE = "delete"


class BulkItemStatus(str, Enum):
    """Outcome of an item that committed; rolled-back items become BulkItemFailure."""

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"  # e.g. recalculation of an already settled meeting


@dataclass(frozen=True)
class BulkItemFailure:
    """A meeting whose operation was rolled back to its savepoint."""

    meeting_id: UUID
    error_code: str
    message: str


@dataclass(frozen=True)
class BulkResult:
    """Aggregate result of a bulk call."""

    operation: BulkOperation
    succeeded: int = 0
    skipped: int = 0
    failed: tuple[BulkItemFailure, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return self.succeeded + self.skipped + len(self.failed)

    @property
    def failed_ids(self) -> tuple[UUID, ...]:
        return tuple(f.meeting_id for f in self.failed)
