"""
Module: settlement_kernel.selectors.meeting_selector
Responsibility: Read access to meetings and reschedule chains.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from settlement_kernel.domain.dtos import MeetingView
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.exceptions import MeetingNotFoundError, RescheduleChainError
from settlement_kernel.models.meeting import Meeting
from settlement_kernel.selectors.base import BaseSelector


class MeetingSelector(BaseSelector[Meeting]):
    """Meeting queries. Soft-deleted rows are never returned."""

    def get(self, meeting_id: UUID) -> MeetingView:
        """
        Raises:
            MeetingNotFoundError: If the meeting is absent or soft-deleted.
        """
        meeting = self._find(meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(str(meeting_id))
        return meeting.to_dto()

    def list_for_cycle(
        self,
        cycle_id: UUID,
        statuses: set[MeetingStatus] | None = None,
    ) -> list[MeetingView]:
        """Meetings of a cycle ordered by date and start time."""
        stmt = select(Meeting).where(
            Meeting.cycle_id == cycle_id,
            Meeting.deleted_at.is_(None),
        )
        if statuses:
            stmt = stmt.where(Meeting.status.in_([s.value for s in statuses]))
        stmt = stmt.order_by(Meeting.scheduled_date, Meeting.start_time, Meeting.id)
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def chain(self, meeting_id: UUID) -> list[MeetingView]:
        """
        The reschedule chain ``meeting_id`` belongs to, ordered from the
        original meeting to the newest successor.

        Raises:
            MeetingNotFoundError: If the meeting is absent.
            RescheduleChainError: If the stored links loop.
        """
        start = self._find(meeting_id)
        if start is None:
            raise MeetingNotFoundError(str(meeting_id))

        seen: set[UUID] = {start.id}
        root = start
        while root.rescheduled_from_id is not None:
            previous = self.session.get(Meeting, root.rescheduled_from_id)
            if previous is None:
                break
            if previous.id in seen:
                raise RescheduleChainError(str(meeting_id), "predecessor links loop")
            seen.add(previous.id)
            root = previous

        chain = [root]
        visited: set[UUID] = {root.id}
        current = root
        while current.rescheduled_to_id is not None:
            following = self.session.get(Meeting, current.rescheduled_to_id)
            if following is None:
                break
            if following.id in visited:
                raise RescheduleChainError(str(meeting_id), "successor links loop")
            visited.add(following.id)
            chain.append(following)
            current = following

        return [m.to_dto() for m in chain]

    def newest_successor(self, meeting_id: UUID) -> MeetingView:
        """Last meeting of the chain (``meeting_id`` itself if never postponed)."""
        return self.chain(meeting_id)[-1]

    def latest_active_date(self, cycle_id: UUID) -> date | None:
        """Date of the cycle's last scheduled or completed meeting."""
        return self.session.scalar(
            select(func.max(Meeting.scheduled_date)).where(
                Meeting.cycle_id == cycle_id,
                Meeting.deleted_at.is_(None),
                Meeting.status.in_([
                    MeetingStatus.SCHEDULED.value,
                    MeetingStatus.COMPLETED.value,
                ]),
            )
        )

    def _find(self, meeting_id: UUID) -> Meeting | None:
        return self.session.scalar(
            select(Meeting).where(
                Meeting.id == meeting_id,
                Meeting.deleted_at.is_(None),
            )
        )
