"""
CycleCompletionService -- closes a cycle when its last meeting is completed.

Responsibility:
    Marks a cycle ``completed`` once ``remaining_meetings`` reaches zero,
    soft-deletes the cycle's still-scheduled meetings that lie after today,
    and notifies ``cycle_completed`` with the settled totals.  Reopens the
    cycle when a completion is reverted.

Architecture position:
    Services.  Called by ``MeetingLifecycleService`` right after a counter
    change, inside the same transaction.

Invariants enforced:
    - Never writes cycle counters (CounterReconciler owns them).
    - Registration statuses are left untouched.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.enums import CycleStatus
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.domain.notifier import NotificationKind, Notifier, make_safe
from settlement_kernel.domain.values import ZERO
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.cycle import Cycle
from settlement_kernel.models.meeting import Meeting
from settlement_kernel.services.base import BaseService

logger = get_logger("services.cycle_completion")


class CycleCompletionService(BaseService[Cycle]):
    """Cycle status follows its counters."""

    def __init__(
        self,
        session: Session,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._notifier = make_safe(notifier)
        self._clock = clock or SystemClock()

    def sync(self, cycle: Cycle) -> None:
        """Complete or reopen ``cycle`` according to its current counters."""
        if cycle.remaining_meetings == 0 and cycle.total_meetings > 0:
            if cycle.status != CycleStatus.COMPLETED.value:
                self.complete_cycle(cycle)
        elif cycle.status == CycleStatus.COMPLETED.value:
            self.reopen(cycle)

    def complete_cycle(self, cycle: Cycle) -> int:
        """
        Mark the cycle completed and drop its future scheduled meetings.

        Returns:
            Number of meetings soft-deleted.
        """
        now = self._clock.now()
        today = now.date()
        result = self.session.execute(
            update(Meeting)
            .where(
                Meeting.cycle_id == cycle.id,
                Meeting.status == MeetingStatus.SCHEDULED.value,
                Meeting.scheduled_date > today,
                Meeting.deleted_at.is_(None),
            )
            .values(deleted_at=now)
            .execution_options(synchronize_session="fetch")
        )
        removed = result.rowcount or 0

        cycle.status = CycleStatus.COMPLETED.value
        self.session.flush()

        totals = self._settled_totals(cycle)
        logger.info(
            "cycle_completed",
            extra={
                "cycle_id": str(cycle.id),
                "total_meetings": cycle.total_meetings,
                "future_meetings_removed": removed,
                **{k: str(v) for k, v in totals.items()},
            },
        )
        self._notifier.notify(
            NotificationKind.CYCLE_COMPLETED,
            {
                "cycle_id": str(cycle.id),
                "cycle_name": cycle.name,
                "total_meetings": cycle.total_meetings,
                "completed_meetings": cycle.completed_meetings,
                **{k: str(v) for k, v in totals.items()},
            },
        )
        return removed

    def reopen(self, cycle: Cycle) -> None:
        cycle.status = CycleStatus.ACTIVE.value
        self.session.flush()
        logger.info(
            "cycle_reopened",
            extra={
                "cycle_id": str(cycle.id),
                "remaining_meetings": cycle.remaining_meetings,
            },
        )

    def _settled_totals(self, cycle: Cycle) -> dict[str, Decimal]:
        row = self.session.execute(
            select(
                func.coalesce(func.sum(Meeting.revenue), 0),
                func.coalesce(func.sum(Meeting.instructor_payment), 0),
                func.coalesce(func.sum(Meeting.profit), 0),
            ).where(
                Meeting.cycle_id == cycle.id,
                Meeting.status == MeetingStatus.COMPLETED.value,
                Meeting.deleted_at.is_(None),
            )
        ).one()
        revenue, payment, profit = (Decimal(str(v)) if v is not None else ZERO for v in row)
        return {
            "total_revenue": revenue,
            "total_instructor_payment": payment,
            "total_profit": profit,
        }
