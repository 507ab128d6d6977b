"""
CounterReconciler -- the single writer of cycle progress counters.

Responsibility:
    Moves one meeting's worth of progress between ``remaining_meetings``
    and ``completed_meetings`` whenever a meeting enters or leaves the
    completed state, grows a cycle when a meeting is added ad hoc, and
    reports whether stored counters still agree with the meeting rows.

Architecture position:
    Kernel > Services.  Called by the lifecycle service inside the same
    transaction as the meeting's status write.

Invariants enforced:
    - completed_meetings + remaining_meetings == total_meetings.  Both
      columns change in one UPDATE statement computed by the database
      (``SET completed = completed + :d, remaining = remaining - :d``), so
      two concurrent completions in one cycle cannot lose an increment.
    - No counter ever goes negative.  If the guarded UPDATE matches no row
      the counters are clamped and ``cycle_counter_clamped`` is logged.
      Clamping is never raised to the caller.

Failure modes:
    - CycleNotFoundError if the cycle does not exist.
    - ValueError for a delta other than +1 / -1 (programming error).
"""

from uuid import UUID

from sqlalchemy import func, select, update

from settlement_kernel.domain.dtos import CounterCheck
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.exceptions import CycleNotFoundError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.cycle import Cycle
from settlement_kernel.models.meeting import Meeting
from settlement_kernel.services.base import BaseService

logger = get_logger("services.counter_reconciler")


class CounterReconciler(BaseService[Cycle]):
    """
    Atomic cycle counter maintenance.

    Guarantees:
        - Every method flushes pending ORM state first and returns the
          cycle with its counters reloaded from the database.
        - Never commits.
    """

    def reconcile(self, cycle_id: UUID, delta: int) -> Cycle:
        """
        Apply ``delta`` to completed_meetings and ``-delta`` to
        remaining_meetings in one statement.

        Args:
            cycle_id: Cycle to adjust.
            delta: +1 when a meeting becomes completed, -1 when it stops
                being completed.

        Returns:
            The cycle with refreshed counters.
        """
        if delta not in (1, -1):
            raise ValueError(f"Counter delta must be +1 or -1, got {delta}")

        self.session.flush()
        result = self.session.execute(
            update(Cycle)
            .where(
                Cycle.id == cycle_id,
                Cycle.completed_meetings + delta >= 0,
                Cycle.remaining_meetings - delta >= 0,
            )
            .values(
                completed_meetings=Cycle.completed_meetings + delta,
                remaining_meetings=Cycle.remaining_meetings - delta,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            cycle = self._load(cycle_id)
            self._clamp(cycle, delta)
            return self._load(cycle_id)

        cycle = self._load(cycle_id)
        logger.info(
            "cycle_counters_reconciled",
            extra={
                "cycle_id": str(cycle_id),
                "delta": delta,
                "completed_meetings": cycle.completed_meetings,
                "remaining_meetings": cycle.remaining_meetings,
            },
        )
        return cycle

    def register_added_meeting(self, cycle_id: UUID) -> Cycle:
        """Grow total_meetings and remaining_meetings by one."""
        self.session.flush()
        result = self.session.execute(
            update(Cycle)
            .where(Cycle.id == cycle_id)
            .values(
                total_meetings=Cycle.total_meetings + 1,
                remaining_meetings=Cycle.remaining_meetings + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CycleNotFoundError(str(cycle_id))

        cycle = self._load(cycle_id)
        logger.info(
            "cycle_meeting_added",
            extra={
                "cycle_id": str(cycle_id),
                "total_meetings": cycle.total_meetings,
                "remaining_meetings": cycle.remaining_meetings,
            },
        )
        return cycle

    def verify(self, cycle_id: UUID) -> CounterCheck:
        """
        Compare stored counters with the number of completed meeting rows.

        Read-only diagnostics; nothing is corrected here.
        """
        cycle = self._load(cycle_id)
        derived_completed = self.session.scalar(
            select(func.count(Meeting.id)).where(
                Meeting.cycle_id == cycle_id,
                Meeting.status == MeetingStatus.COMPLETED.value,
                Meeting.deleted_at.is_(None),
            )
        ) or 0
        return CounterCheck(
            cycle_id=cycle.id,
            total_meetings=cycle.total_meetings,
            completed_meetings=cycle.completed_meetings,
            remaining_meetings=cycle.remaining_meetings,
            derived_completed=derived_completed,
        )

    def _clamp(self, cycle: Cycle, delta: int) -> None:
        if delta < 0:
            clamped = {"completed_meetings": 0, "remaining_meetings": Cycle.total_meetings}
        else:
            clamped = {"completed_meetings": Cycle.total_meetings, "remaining_meetings": 0}

        logger.warning(
            "cycle_counter_clamped",
            extra={
                "cycle_id": str(cycle.id),
                "delta": delta,
                "total_meetings": cycle.total_meetings,
                "completed_meetings": cycle.completed_meetings,
                "remaining_meetings": cycle.remaining_meetings,
            },
        )
        self.session.execute(
            update(Cycle)
            .where(Cycle.id == cycle.id)
            .values(**clamped)
            .execution_options(synchronize_session=False)
        )

    def _load(self, cycle_id: UUID) -> Cycle:
        cycle = self.session.scalar(
            select(Cycle)
            .where(Cycle.id == cycle_id)
            .execution_options(populate_existing=True)
        )
        if cycle is None:
            raise CycleNotFoundError(str(cycle_id))
        return cycle
