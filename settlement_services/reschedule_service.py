"""
RescheduleService -- successor meetings, reschedule chains and change requests.

Responsibility:
    Creates the successor of a postponed meeting and links the two,
    records instructor change requests and their review, and answers
    chain queries.  Status changes themselves are decided by
    ``MeetingLifecycleService``, which calls into this service.

Architecture position:
    Services.  Flush-only; the caller owns the transaction.

Invariants enforced:
    - A meeting has at most one successor, and the successor's
      ``rescheduled_from_id`` always points back (``_link_successor``).
    - The chain never loops: a successor may not already be part of the
      chain it is appended to.
    - At most one pending change request per (meeting, type).

Failure modes:
    - DuplicateRequestError if a pending request of the same type exists.
    - RescheduleChainError if linking would break the one-way list.
    - MeetingNotFoundError from chain queries.
"""

from __future__ import annotations

from datetime import date, time, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.dtos import MeetingView
from settlement_kernel.domain.meeting_status import (
    ChangeRequestStatus,
    ChangeRequestType,
    MeetingStatus,
)
from settlement_kernel.exceptions import DuplicateRequestError, RescheduleChainError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.change_request import MeetingChangeRequest
from settlement_kernel.models.meeting import Meeting
from settlement_kernel.selectors.meeting_selector import MeetingSelector
from settlement_kernel.services.base import BaseService

logger = get_logger("services.reschedule")

DEFAULT_RESCHEDULE_INTERVAL_DAYS = 7


class RescheduleService(BaseService[Meeting]):
    """
    Reschedule chain and change-request bookkeeping.

    Guarantees:
        - ``create_successor`` returns a flushed scheduled meeting in the
          same cycle, for the same instructor, already linked both ways.
        - Never commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        reschedule_interval_days: int = DEFAULT_RESCHEDULE_INTERVAL_DAYS,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._interval = timedelta(days=reschedule_interval_days)
        self._selector = MeetingSelector(session)

    # ------------------------------------------------------------------
    # Successors
    # ------------------------------------------------------------------

    def create_successor(
        self,
        original: Meeting,
        new_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
        actor_id: UUID | None = None,
    ) -> Meeting:
        """
        Create and link the meeting that replaces ``original``.

        Times are inherited unless overridden.  Without ``new_date`` the
        successor lands one interval after the cycle's latest scheduled or
        completed meeting.
        """
        if original.rescheduled_to_id is not None:
            raise RescheduleChainError(
                str(original.id), "meeting already has a successor",
            )

        scheduled_date = new_date or self.default_successor_date(original)
        successor = Meeting(
            cycle_id=original.cycle_id,
            instructor_id=original.instructor_id,
            scheduled_date=scheduled_date,
            start_time=start_time if start_time is not None else original.start_time,
            end_time=end_time if end_time is not None else original.end_time,
            status=MeetingStatus.SCHEDULED.value,
            activity_type=original.activity_type,
            topic=original.topic,
            created_by_id=actor_id,
        )
        self.session.add(successor)
        self.session.flush()

        self._link_successor(original, successor)

        logger.info(
            "successor_meeting_created",
            extra={
                "meeting_id": str(original.id),
                "successor_id": str(successor.id),
                "cycle_id": str(original.cycle_id),
                "scheduled_date": scheduled_date.isoformat(),
            },
        )
        return successor

    def default_successor_date(self, original: Meeting) -> date:
        latest = self._selector.latest_active_date(original.cycle_id)
        anchor = max(latest, original.scheduled_date) if latest else original.scheduled_date
        return anchor + self._interval

    def _link_successor(self, original: Meeting, successor: Meeting) -> None:
        if successor.id == original.id:
            raise RescheduleChainError(str(original.id), "meeting cannot succeed itself")

        chain_ids = {view.id for view in self._selector.chain(original.id)}
        if successor.id in chain_ids:
            raise RescheduleChainError(
                str(original.id), f"meeting {successor.id} is already in the chain",
            )

        original.rescheduled_to_id = successor.id
        successor.rescheduled_from_id = original.id
        self.session.flush()

    # ------------------------------------------------------------------
    # Chain queries
    # ------------------------------------------------------------------

    def get_chain(self, meeting_id: UUID) -> list[MeetingView]:
        """Chain containing ``meeting_id``, root first."""
        return self._selector.chain(meeting_id)

    def newest_successor(self, meeting_id: UUID) -> MeetingView:
        return self._selector.newest_successor(meeting_id)

    # ------------------------------------------------------------------
    # Change requests
    # ------------------------------------------------------------------

    def pending_request(
        self,
        meeting_id: UUID,
        request_type: ChangeRequestType,
    ) -> MeetingChangeRequest | None:
        return self.session.scalar(
            select(MeetingChangeRequest).where(
                MeetingChangeRequest.meeting_id == meeting_id,
                MeetingChangeRequest.type == request_type.value,
                MeetingChangeRequest.status == ChangeRequestStatus.PENDING.value,
            )
        )

    def ensure_no_pending(self, meeting_id: UUID, request_type: ChangeRequestType) -> None:
        """
        Raises:
            DuplicateRequestError: If a pending request of this type exists.
        """
        if self.pending_request(meeting_id, request_type) is not None:
            logger.warning(
                "change_request_duplicate",
                extra={"meeting_id": str(meeting_id), "request_type": request_type.value},
            )
            raise DuplicateRequestError(str(meeting_id), request_type.value)

    def open_request(
        self,
        meeting: Meeting,
        request_type: ChangeRequestType,
        reason: str | None = None,
        requested_date: date | None = None,
        instructor_id: UUID | None = None,
    ) -> MeetingChangeRequest:
        """Record a pending request. Checks for duplicates first."""
        self.ensure_no_pending(meeting.id, request_type)

        request = MeetingChangeRequest(
            meeting_id=meeting.id,
            instructor_id=instructor_id or meeting.instructor_id,
            type=request_type.value,
            reason=reason,
            requested_date=requested_date,
            status=ChangeRequestStatus.PENDING.value,
            created_at=self._clock.now(),
        )
        self.session.add(request)
        self.session.flush()

        logger.info(
            "change_request_opened",
            extra={
                "meeting_id": str(meeting.id),
                "request_id": str(request.id),
                "request_type": request_type.value,
            },
        )
        return request

    def resolve_request(
        self,
        meeting_id: UUID,
        request_type: ChangeRequestType,
        outcome: ChangeRequestStatus,
        reviewer_id: UUID | None = None,
    ) -> MeetingChangeRequest | None:
        """
        Close the pending request of ``request_type``, if there is one.

        Meetings put into a pending state by an import have no request row;
        that is not an error.
        """
        if outcome == ChangeRequestStatus.PENDING:
            raise ValueError("A request can only be resolved to approved or rejected")

        request = self.pending_request(meeting_id, request_type)
        if request is None:
            logger.info(
                "change_request_missing",
                extra={"meeting_id": str(meeting_id), "request_type": request_type.value},
            )
            return None

        request.status = outcome.value
        request.reviewed_by_id = reviewer_id
        request.reviewed_at = self._clock.now()
        self.session.flush()

        logger.info(
            "change_request_resolved",
            extra={
                "meeting_id": str(meeting_id),
                "request_id": str(request.id),
                "request_type": request_type.value,
                "outcome": outcome.value,
            },
        )
        return request
