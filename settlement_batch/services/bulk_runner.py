"""
BulkOperationRunner -- SAVEPOINT-per-item bulk lifecycle operations.

Contract:
    ``bulk_apply(ids, operation, **params)`` runs the same lifecycle method
    a single-item call would, once per meeting id, each inside its own
    SAVEPOINT.  A failing item is rolled back to its savepoint and
    recorded; the remaining items still run.

Architecture: settlement_batch/services.  Imports from
    settlement_batch.domain and the kernel.  The lifecycle service is
    injected, so batch never imports settlement_services.

Invariants enforced:
    - SAVEPOINT isolation per item (one failure doesn't abort the batch).
    - Malformed calls are rejected before any item runs.
    - Does NOT commit: the caller owns the outer transaction.
"""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_kernel.domain.dtos import RecalculationResult
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.exceptions import InvalidBulkRequestError, SettlementKernelError
from settlement_kernel.logging_config import LogContext, get_logger

from settlement_batch.domain.types import (
    BulkItemFailure,
    BulkItemStatus,
    BulkOperation,
    BulkResult,
)

logger = get_logger("batch.bulk_runner")

UNHANDLED_ERROR_CODE = "UNHANDLED_EXCEPTION"

_ALLOWED_PARAMS: dict[BulkOperation, frozenset[str]] = {
    BulkOperation.COMPLETE: frozenset({"actor_id"}),
    BulkOperation.CANCEL: frozenset({"actor_id", "reason"}),
    BulkOperation.UPDATE_STATUS: frozenset({"actor_id", "status", "reason", "new_date"}),
    BulkOperation.RECALCULATE: frozenset({"force"}),
    BulkOperation.DELETE: frozenset({"actor_id"}),
}


class MeetingOperations(Protocol):
    """The lifecycle methods the runner drives."""

    def complete(self, meeting_id: UUID, actor_id: UUID | None = None) -> Any: ...

    def cancel(
        self, meeting_id: UUID, reason: str | None = None, actor_id: UUID | None = None,
    ) -> Any: ...

    def update_status(
        self,
        meeting_id: UUID,
        target: MeetingStatus,
        actor_id: UUID | None = None,
        reason: str | None = None,
        new_date: date | None = None,
    ) -> Any: ...

    def recalculate(self, meeting_id: UUID, force: bool = False) -> RecalculationResult: ...

    def delete_meeting(self, meeting_id: UUID, actor_id: UUID | None = None) -> Any: ...


class BulkOperationRunner:
    """Applies one lifecycle operation to many meetings.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT parallelize; items run sequentially in one transaction.
    """

    def __init__(self, session: Session, lifecycle: MeetingOperations):
        self._session = session
        self._lifecycle = lifecycle

    def bulk_apply(
        self,
        meeting_ids: list[UUID] | tuple[UUID, ...],
        operation: BulkOperation | str,
        **params: Any,
    ) -> BulkResult:
        """Run ``operation`` for every id.

        Raises:
            InvalidBulkRequestError: Empty id list, unknown operation,
                unsupported parameters, or ``update_status`` without a
                valid ``status``.
        """
        op = self._validate(meeting_ids, operation, params)
        started = time.monotonic()

        succeeded = 0
        skipped = 0
        failures: list[BulkItemFailure] = []

        with LogContext.bind(operation=f"bulk_{op.value}"):
            for meeting_id in meeting_ids:
                savepoint = self._session.begin_nested()
                try:
                    status = self._apply_one(op, meeting_id, params)
                except SettlementKernelError as exc:
                    savepoint.rollback()
                    failures.append(BulkItemFailure(meeting_id, exc.code, str(exc)))
                    logger.warning("bulk_item_failed", extra={
                        "meeting_id": str(meeting_id),
                        "error_code": exc.code,
                        "error_message": str(exc),
                    })
                    continue
                except Exception as exc:
                    savepoint.rollback()
                    failures.append(BulkItemFailure(meeting_id, UNHANDLED_ERROR_CODE, str(exc)))
                    logger.error("bulk_item_failed", exc_info=True, extra={
                        "meeting_id": str(meeting_id),
                        "error_code": UNHANDLED_ERROR_CODE,
                    })
                    continue

                savepoint.commit()
                if status == BulkItemStatus.SKIPPED:
                    skipped += 1
                else:
                    succeeded += 1

        result = BulkResult(
            operation=op,
            succeeded=succeeded,
            skipped=skipped,
            failed=tuple(failures),
        )
        logger.info("bulk_operation_completed", extra={
            "operation": op.value,
            "total": result.total,
            "succeeded": succeeded,
            "skipped": skipped,
            "failed": len(failures),
            "duration_ms": round((time.monotonic() - started) * 1000, 2),
        })
        return result

    def _apply_one(
        self,
        op: BulkOperation,
        meeting_id: UUID,
        params: dict[str, Any],
    ) -> BulkItemStatus:
        actor_id = params.get("actor_id")
        if op == BulkOperation.COMPLETE:
            self._lifecycle.complete(meeting_id, actor_id=actor_id)
        elif op == BulkOperation.CANCEL:
            self._lifecycle.cancel(meeting_id, reason=params.get("reason"), actor_id=actor_id)
        elif op == BulkOperation.UPDATE_STATUS:
            self._lifecycle.update_status(
                meeting_id,
                MeetingStatus(params["status"]),
                actor_id=actor_id,
                reason=params.get("reason"),
                new_date=params.get("new_date"),
            )
        elif op == BulkOperation.RECALCULATE:
            result = self._lifecycle.recalculate(meeting_id, force=bool(params.get("force", False)))
            if result.skipped:
                return BulkItemStatus.SKIPPED
        else:
            self._lifecycle.delete_meeting(meeting_id, actor_id=actor_id)
        return BulkItemStatus.SUCCEEDED

    @staticmethod
    def _validate(
        meeting_ids: list[UUID] | tuple[UUID, ...],
        operation: BulkOperation | str,
        params: dict[str, Any],
    ) -> BulkOperation:
        if not meeting_ids:
            raise InvalidBulkRequestError("meeting id list is empty")

        try:
            op = BulkOperation(operation)
        except ValueError:
            raise InvalidBulkRequestError(f"unknown operation {operation!r}") from None

        unexpected = set(params) - _ALLOWED_PARAMS[op]
        if unexpected:
            raise InvalidBulkRequestError(
                f"unsupported parameters for {op.value}: {', '.join(sorted(unexpected))}"
            )

        if op == BulkOperation.UPDATE_STATUS:
            status = params.get("status")
            if status is None:
                raise InvalidBulkRequestError("update_status requires a target status")
            try:
                MeetingStatus(status)
            except ValueError:
                raise InvalidBulkRequestError(f"unknown meeting status {status!r}") from None
        return op
