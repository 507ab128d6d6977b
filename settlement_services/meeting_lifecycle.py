"""
MeetingLifecycleService -- the meeting state machine.

Responsibility:
    Owns every status change of a meeting and its side effects: settlement
    on completion, reversal when a completion is undone, counter
    reconciliation, successor creation on postponement, the instructor
    request / admin review workflow, ad-hoc creation and soft deletion.

Architecture position:
    Services.  Composes the kernel's CounterReconciler, the settlement
    engine, RescheduleService and CycleCompletionService.  Flush-only:
    ``MeetingEngine`` (or a bulk savepoint) owns the transaction, so the
    meeting write and the cycle counter write commit together.

Invariants enforced:
    - Only pairs listed in ``MEETING_TRANSITIONS`` are applied; anything
      else raises InvalidTransitionError naming both states.
    - revenue / instructor_payment / profit are set by completion and
      recalculation only, and zeroed whenever a meeting leaves (or never
      reaches) completed.
    - Counters move by exactly +1 on entering completed and -1 on leaving
      it, through CounterReconciler.
    - Meeting rows are loaded ``FOR UPDATE``.
    - Notifications go through SafeNotifier and never fail a transition.

Failure modes:
    - MeetingNotFoundError / CycleNotFoundError / InstructorNotFoundError.
    - InvalidTransitionError, DuplicateRequestError, RescheduleChainError.
"""

from __future__ import annotations

from datetime import date, time
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_engines.settlement import SettlementCalculator
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.dtos import (
    InstructorRates,
    MeetingView,
    PostponementResult,
    RecalculationResult,
    RecalculationStatus,
    SettlementResult,
)
from settlement_kernel.domain.enums import ActivityType
from settlement_kernel.domain.meeting_status import (
    PENDING_MEETING_STATUSES,
    ChangeRequestStatus,
    ChangeRequestType,
    MeetingStatus,
    can_transition,
)
from settlement_kernel.domain.notifier import NotificationKind, Notifier, make_safe
from settlement_kernel.domain.values import ZERO, is_positive
from settlement_kernel.exceptions import (
    CycleNotFoundError,
    InstructorNotFoundError,
    InvalidTransitionError,
    MeetingNotFoundError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.cycle import Cycle
from settlement_kernel.models.instructor import Instructor
from settlement_kernel.models.meeting import Meeting
from settlement_kernel.models.registration import Registration
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.counter_reconciler import CounterReconciler
from settlement_services.cycle_completion import CycleCompletionService
from settlement_services.reschedule_service import (
    DEFAULT_RESCHEDULE_INTERVAL_DAYS,
    RescheduleService,
)

logger = get_logger("services.meeting_lifecycle")


class MeetingLifecycleService(BaseService[Meeting]):
    """
    Meeting state machine.

    Contract:
        Every public method takes a meeting id, locks the row, checks the
        transition table and applies the side effects of that transition.

    Non-goals:
        - Does NOT commit.  Use ``MeetingEngine`` for transactional calls.
    """

    def __init__(
        self,
        session: Session,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        calculator: SettlementCalculator | None = None,
        reschedule_interval_days: int = DEFAULT_RESCHEDULE_INTERVAL_DAYS,
        negative_profit_alerts: bool = True,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._notifier = make_safe(notifier)
        self._calculator = calculator or SettlementCalculator()
        self._negative_profit_alerts = negative_profit_alerts
        self._reconciler = CounterReconciler(session)
        self._reschedule = RescheduleService(
            session, clock=self._clock, reschedule_interval_days=reschedule_interval_days,
        )
        self._cycles = CycleCompletionService(session, notifier=self._notifier, clock=self._clock)

    @property
    def reschedule(self) -> RescheduleService:
        return self._reschedule

    @property
    def reconciler(self) -> CounterReconciler:
        return self._reconciler

    # ------------------------------------------------------------------
    # scheduled -> completed
    # ------------------------------------------------------------------

    def complete(self, meeting_id: UUID, actor_id: UUID | None = None) -> MeetingView:
        """Settle the meeting and count it as completed."""
        meeting = self._lock(meeting_id)
        self._require(meeting, MeetingStatus.COMPLETED, allowed_from={MeetingStatus.SCHEDULED})

        with LogContext.bind(meeting_id=str(meeting.id), cycle_id=str(meeting.cycle_id)):
            self._apply_completion(meeting, actor_id)
        return meeting.to_dto()

    def _apply_completion(self, meeting: Meeting, actor_id: UUID | None) -> SettlementResult:
        settlement = self._settle(meeting)
        self._write_settlement(meeting, settlement)
        self._stamp(meeting, MeetingStatus.COMPLETED, actor_id)
        self.session.flush()

        cycle = self._reconciler.reconcile(meeting.cycle_id, +1)

        logger.info("meeting_completed", extra={
            "meeting_id": str(meeting.id),
            "revenue": str(settlement.revenue),
            "instructor_payment": str(settlement.instructor_payment),
            "profit": str(settlement.profit),
        })

        if settlement.is_loss and self._negative_profit_alerts:
            self._notifier.notify(
                NotificationKind.NEGATIVE_PROFIT,
                self._payload(meeting, profit=str(settlement.profit),
                              revenue=str(settlement.revenue),
                              instructor_payment=str(settlement.instructor_payment)),
            )

        self._cycles.sync(cycle)
        return settlement

    # ------------------------------------------------------------------
    # scheduled -> cancelled
    # ------------------------------------------------------------------

    def cancel(
        self,
        meeting_id: UUID,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> MeetingView:
        """Cancel a scheduled meeting. Counters are not touched."""
        meeting = self._lock(meeting_id)
        self._require(meeting, MeetingStatus.CANCELLED, allowed_from={MeetingStatus.SCHEDULED})
        self._apply_cancellation(meeting, reason, actor_id)
        return meeting.to_dto()

    def _apply_cancellation(
        self,
        meeting: Meeting,
        reason: str | None,
        actor_id: UUID | None,
    ) -> None:
        self._zero_settlement(meeting)
        if reason is not None:
            meeting.status_reason = reason
        self._stamp(meeting, MeetingStatus.CANCELLED, actor_id)
        self.session.flush()
        logger.info("meeting_cancelled", extra={
            "meeting_id": str(meeting.id),
            "cycle_id": str(meeting.cycle_id),
            "reason": meeting.status_reason,
        })

    # ------------------------------------------------------------------
    # scheduled -> postponed
    # ------------------------------------------------------------------

    def postpone(
        self,
        meeting_id: UUID,
        new_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
        actor_id: UUID | None = None,
    ) -> PostponementResult:
        """Postpone a scheduled meeting and create its successor."""
        meeting = self._lock(meeting_id)
        self._require(meeting, MeetingStatus.POSTPONED, allowed_from={MeetingStatus.SCHEDULED})
        successor = self._apply_postponement(meeting, new_date, start_time, end_time, actor_id)
        return PostponementResult(original=meeting.to_dto(), successor=successor.to_dto())

    def postpone_latest(
        self,
        meeting_id: UUID,
        new_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
        actor_id: UUID | None = None,
    ) -> PostponementResult:
        """Postpone the newest meeting of ``meeting_id``'s reschedule chain."""
        newest = self._reschedule.newest_successor(meeting_id)
        return self.postpone(newest.id, new_date, start_time, end_time, actor_id)

    def _apply_postponement(
        self,
        meeting: Meeting,
        new_date: date | None,
        start_time: time | None,
        end_time: time | None,
        actor_id: UUID | None,
    ) -> Meeting:
        self._zero_settlement(meeting)
        self._stamp(meeting, MeetingStatus.POSTPONED, actor_id)
        self.session.flush()
        successor = self._reschedule.create_successor(
            meeting, new_date, start_time, end_time, actor_id,
        )
        logger.info("meeting_postponed", extra={
            "meeting_id": str(meeting.id),
            "cycle_id": str(meeting.cycle_id),
            "successor_id": str(successor.id),
            "new_date": successor.scheduled_date.isoformat(),
        })
        return successor

    # ------------------------------------------------------------------
    # Instructor requests
    # ------------------------------------------------------------------

    def request_change(
        self,
        meeting_id: UUID,
        request_type: ChangeRequestType,
        reason: str | None = None,
        requested_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> MeetingView:
        """Move a scheduled meeting into a pending state awaiting review."""
        meeting = self._lock(meeting_id)
        self._reschedule.ensure_no_pending(meeting.id, request_type)
        target = request_type.pending_status
        self._require(meeting, target, allowed_from={MeetingStatus.SCHEDULED})

        request = self._reschedule.open_request(
            meeting, request_type, reason=reason,
            requested_date=requested_date, instructor_id=actor_id,
        )
        meeting.status_reason = reason
        self._stamp(meeting, target, actor_id)
        self.session.flush()

        logger.info("meeting_change_requested", extra={
            "meeting_id": str(meeting.id),
            "request_type": request_type.value,
            "request_id": str(request.id),
        })
        self._notifier.notify(
            NotificationKind.CHANGE_REQUEST_CREATED,
            self._payload(meeting, request_id=str(request.id),
                          request_type=request_type.value, reason=reason,
                          requested_date=requested_date.isoformat() if requested_date else None),
        )
        return meeting.to_dto()

    def approve(
        self,
        meeting_id: UUID,
        actor_id: UUID | None = None,
        new_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
    ) -> MeetingView:
        """
        Approve the pending request: cancel, or postpone to ``new_date``
        (falling back to the date the instructor proposed).
        """
        meeting = self._lock(meeting_id)
        request_type = self._pending_type(meeting, "approve")
        target = (
            MeetingStatus.CANCELLED if request_type == ChangeRequestType.CANCEL
            else MeetingStatus.POSTPONED
        )
        self._require(meeting, target)

        request = self._reschedule.resolve_request(
            meeting.id, request_type, ChangeRequestStatus.APPROVED, reviewer_id=actor_id,
        )
        if request_type == ChangeRequestType.CANCEL:
            self._apply_cancellation(meeting, None, actor_id)
        else:
            proposed = request.requested_date if request is not None else None
            self._apply_postponement(meeting, new_date or proposed, start_time, end_time, actor_id)

        self._notifier.notify(
            NotificationKind.CHANGE_REQUEST_APPROVED,
            self._payload(meeting, request_type=request_type.value,
                          request_id=str(request.id) if request is not None else None),
        )
        return meeting.to_dto()

    def reject(self, meeting_id: UUID, actor_id: UUID | None = None) -> MeetingView:
        """Reject the pending request and put the meeting back on schedule."""
        meeting = self._lock(meeting_id)
        request_type = self._pending_type(meeting, "reject")
        self._require(meeting, MeetingStatus.SCHEDULED)

        request = self._reschedule.resolve_request(
            meeting.id, request_type, ChangeRequestStatus.REJECTED, reviewer_id=actor_id,
        )
        meeting.status_reason = None
        self._stamp(meeting, MeetingStatus.SCHEDULED, actor_id)
        self.session.flush()

        logger.info("meeting_change_rejected", extra={
            "meeting_id": str(meeting.id),
            "request_type": request_type.value,
        })
        self._notifier.notify(
            NotificationKind.CHANGE_REQUEST_REJECTED,
            self._payload(meeting, request_type=request_type.value,
                          request_id=str(request.id) if request is not None else None),
        )
        return meeting.to_dto()

    # ------------------------------------------------------------------
    # Generic status update
    # ------------------------------------------------------------------

    def update_status(
        self,
        meeting_id: UUID,
        target: MeetingStatus,
        actor_id: UUID | None = None,
        reason: str | None = None,
        new_date: date | None = None,
    ) -> MeetingView:
        """
        Move a meeting to ``target`` through the operation matching the
        (current, target) pair.  Used by bulk status updates.
        """
        target = MeetingStatus(target)
        meeting = self._lock(meeting_id)
        current = meeting.meeting_status

        if not can_transition(current, target):
            raise InvalidTransitionError(current.value, target.value, str(meeting.id))

        if current == MeetingStatus.SCHEDULED:
            if target == MeetingStatus.COMPLETED:
                return self.complete(meeting_id, actor_id)
            if target == MeetingStatus.CANCELLED:
                return self.cancel(meeting_id, reason, actor_id)
            if target == MeetingStatus.POSTPONED:
                return self.postpone(meeting_id, new_date, actor_id=actor_id).original
            return self.request_change(
                meeting_id, ChangeRequestType.for_pending_status(target), reason, actor_id=actor_id,
            )

        if current in PENDING_MEETING_STATUSES:
            if target == MeetingStatus.SCHEDULED:
                return self.reject(meeting_id, actor_id)
            return self.approve(meeting_id, actor_id, new_date=new_date)

        # current == COMPLETED
        if target == MeetingStatus.COMPLETED:
            self.recalculate(meeting_id)
            return meeting.to_dto()

        with LogContext.bind(meeting_id=str(meeting.id), cycle_id=str(meeting.cycle_id)):
            self._revert_completion(meeting)
            if target == MeetingStatus.CANCELLED:
                self._apply_cancellation(meeting, reason, actor_id)
            elif target == MeetingStatus.POSTPONED:
                self._apply_postponement(meeting, new_date, None, None, actor_id)
            else:
                self._stamp(meeting, MeetingStatus.SCHEDULED, actor_id)
                self.session.flush()
                logger.info("meeting_reverted", extra={"meeting_id": str(meeting.id)})
        return meeting.to_dto()

    def _revert_completion(self, meeting: Meeting) -> None:
        self._zero_settlement(meeting)
        self.session.flush()
        cycle = self._reconciler.reconcile(meeting.cycle_id, -1)
        self._cycles.sync(cycle)

    # ------------------------------------------------------------------
    # completed -> completed
    # ------------------------------------------------------------------

    def recalculate(self, meeting_id: UUID, force: bool = False) -> RecalculationResult:
        """
        Re-settle a completed meeting.

        Without ``force`` a meeting that already carries positive revenue is
        skipped and reported as CALCULATION_SKIPPED.
        """
        meeting = self._lock(meeting_id)
        self._require(meeting, MeetingStatus.COMPLETED, allowed_from={MeetingStatus.COMPLETED})
        previous = meeting.revenue

        if not force and is_positive(previous):
            logger.info("meeting_recalculation_skipped", extra={
                "meeting_id": str(meeting.id),
                "revenue": str(previous),
            })
            return RecalculationResult(
                meeting_id=meeting.id,
                status=RecalculationStatus.CALCULATION_SKIPPED,
                previous_revenue=previous,
            )

        settlement = self._settle(meeting)
        self._write_settlement(meeting, settlement)
        self.session.flush()
        logger.info("meeting_recalculated", extra={
            "meeting_id": str(meeting.id),
            "previous_revenue": str(previous) if previous is not None else None,
            "revenue": str(settlement.revenue),
            "profit": str(settlement.profit),
            "forced": force,
        })
        return RecalculationResult(
            meeting_id=meeting.id,
            status=RecalculationStatus.RECALCULATED,
            previous_revenue=previous,
            settlement=settlement,
        )

    # ------------------------------------------------------------------
    # Ad-hoc creation and deletion
    # ------------------------------------------------------------------

    def create_meeting(
        self,
        cycle_id: UUID,
        scheduled_date: date,
        start_time: time | None = None,
        end_time: time | None = None,
        instructor_id: UUID | None = None,
        activity_type: ActivityType | None = None,
        topic: str | None = None,
        actor_id: UUID | None = None,
    ) -> MeetingView:
        """Add a scheduled meeting to a cycle, growing its total by one."""
        cycle = self._get_cycle(cycle_id)
        meeting = Meeting(
            cycle_id=cycle.id,
            instructor_id=instructor_id or cycle.instructor_id,
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            status=MeetingStatus.SCHEDULED.value,
            activity_type=ActivityType(activity_type).value if activity_type else None,
            topic=topic,
            created_by_id=actor_id,
        )
        self.session.add(meeting)
        self.session.flush()

        cycle = self._reconciler.register_added_meeting(cycle.id)
        self._cycles.sync(cycle)

        logger.info("meeting_created", extra={
            "meeting_id": str(meeting.id),
            "cycle_id": str(cycle.id),
            "scheduled_date": scheduled_date.isoformat(),
        })
        return meeting.to_dto()

    def delete_meeting(self, meeting_id: UUID, actor_id: UUID | None = None) -> MeetingView:
        """Soft-delete a meeting, un-counting it first if it was completed."""
        meeting = self._lock(meeting_id)
        if meeting.meeting_status == MeetingStatus.COMPLETED:
            self._revert_completion(meeting)
        meeting.deleted_at = self._clock.now()
        meeting.status_updated_by_id = actor_id
        self.session.flush()
        logger.info("meeting_deleted", extra={
            "meeting_id": str(meeting.id),
            "cycle_id": str(meeting.cycle_id),
            "status": meeting.status,
        })
        return meeting.to_dto()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock(self, meeting_id: UUID) -> Meeting:
        meeting = self.session.scalar(
            select(Meeting)
            .where(Meeting.id == meeting_id, Meeting.deleted_at.is_(None))
            .with_for_update()
        )
        if meeting is None:
            raise MeetingNotFoundError(str(meeting_id))
        return meeting

    @staticmethod
    def _require(
        meeting: Meeting,
        target: MeetingStatus,
        allowed_from: set[MeetingStatus] | None = None,
    ) -> None:
        current = meeting.meeting_status
        legal = can_transition(current, target)
        if allowed_from is not None:
            legal = legal and current in allowed_from
        if not legal:
            logger.warning("meeting_transition_rejected", extra={
                "meeting_id": str(meeting.id),
                "current_status": current.value,
                "requested_status": target.value,
            })
            raise InvalidTransitionError(current.value, target.value, str(meeting.id))

    @staticmethod
    def _pending_type(meeting: Meeting, operation: str) -> ChangeRequestType:
        current = meeting.meeting_status
        if current not in PENDING_MEETING_STATUSES:
            raise InvalidTransitionError(current.value, operation, str(meeting.id))
        return ChangeRequestType.for_pending_status(current)

    def _stamp(self, meeting: Meeting, status: MeetingStatus, actor_id: UUID | None) -> None:
        meeting.status = status.value
        meeting.status_updated_at = self._clock.now()
        meeting.status_updated_by_id = actor_id

    def _settle(self, meeting: Meeting) -> SettlementResult:
        cycle = self._get_cycle(meeting.cycle_id)
        registrations = self.session.scalars(
            select(Registration).where(Registration.cycle_id == cycle.id)
        ).all()
        return self._calculator.settle(
            meeting=meeting.to_times(),
            cycle=cycle.to_terms(),
            registrations=tuple(r.to_input() for r in registrations),
            instructor=self._instructor_rates(meeting, cycle),
        )

    def _instructor_rates(self, meeting: Meeting, cycle: Cycle) -> InstructorRates | None:
        instructor_id = meeting.instructor_id or cycle.instructor_id
        if instructor_id is None:
            return None
        instructor = self.session.get(Instructor, instructor_id)
        if instructor is None:
            raise InstructorNotFoundError(str(instructor_id))
        return instructor.to_rates()

    def _get_cycle(self, cycle_id: UUID) -> Cycle:
        cycle = self.session.get(Cycle, cycle_id)
        if cycle is None:
            raise CycleNotFoundError(str(cycle_id))
        return cycle

    @staticmethod
    def _write_settlement(meeting: Meeting, settlement: SettlementResult) -> None:
        meeting.revenue = settlement.revenue
        meeting.instructor_payment = settlement.instructor_payment
        meeting.profit = settlement.profit
        if meeting.activity_type is None:
            meeting.activity_type = settlement.activity_type.value

    @staticmethod
    def _zero_settlement(meeting: Meeting) -> None:
        meeting.revenue = ZERO
        meeting.instructor_payment = ZERO
        meeting.profit = ZERO

    @staticmethod
    def _payload(meeting: Meeting, **extra: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "meeting_id": str(meeting.id),
            "cycle_id": str(meeting.cycle_id),
            "instructor_id": str(meeting.instructor_id) if meeting.instructor_id else None,
            "scheduled_date": meeting.scheduled_date.isoformat(),
        }
        payload.update(extra)
        return payload
