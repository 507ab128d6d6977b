"""
Domain DTOs -- frozen records passed between layers.

Responsibility:
    Immutable inputs of the settlement calculator (``CycleTerms``,
    ``MeetingTimes``, ``RegistrationInput``, ``InstructorRates``) and the
    results returned by lifecycle operations (``MeetingView``,
    ``SettlementResult``, ``RecalculationResult``, ``PostponementResult``,
    ``CounterCheck``).

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.  ORM models convert to
    these via ``to_dto()``; engines consume and produce only these.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

from settlement_kernel.domain.enums import (
    ActivityType,
    CycleType,
    RegistrationStatus,
)
from settlement_kernel.domain.meeting_status import MeetingStatus


# =========================================================================
# Settlement inputs
# =========================================================================


@dataclass(frozen=True)
class CycleTerms:
    """Billing terms of a cycle, as read by the settlement calculator."""

    cycle_id: UUID
    type: CycleType
    total_meetings: int
    price_per_student: Decimal | None = None
    meeting_revenue: Decimal | None = None
    student_count: int | None = None
    duration_minutes: int = 60
    activity_type: ActivityType | None = None
    is_online: bool = False


@dataclass(frozen=True)
class MeetingTimes:
    """The parts of a meeting that affect its settlement."""

    meeting_id: UUID
    scheduled_date: date
    start_time: time | None = None
    end_time: time | None = None
    activity_type: ActivityType | None = None


@dataclass(frozen=True)
class RegistrationInput:
    status: RegistrationStatus
    amount: Decimal | None = None


@dataclass(frozen=True)
class InstructorRates:
    """Hourly rate card of an instructor. Any rate may be unset."""

    instructor_id: UUID
    rate_frontal: Decimal | None = None
    rate_online: Decimal | None = None
    rate_private: Decimal | None = None


# =========================================================================
# Settlement output
# =========================================================================


@dataclass(frozen=True)
class SettlementResult:
    """
    Revenue, instructor payment and profit for one meeting.

    ``hourly_rate``, ``duration_minutes`` and ``activity_type`` record how
    the payment was derived.  ``flags`` names data conditions the
    calculator worked around (e.g. ``non_positive_total_meetings``).
    """

    revenue: Decimal
    instructor_payment: Decimal
    profit: Decimal
    activity_type: ActivityType
    hourly_rate: Decimal
    duration_minutes: int
    flags: tuple[str, ...] = ()

    @property
    def is_loss(self) -> bool:
        return self.profit < 0


# =========================================================================
# Lifecycle results
# =========================================================================


@dataclass(frozen=True)
class MeetingView:
    """Read model of a meeting row."""

    id: UUID
    cycle_id: UUID
    instructor_id: UUID | None
    scheduled_date: date
    start_time: time | None
    end_time: time | None
    status: MeetingStatus
    activity_type: ActivityType | None = None
    revenue: Decimal | None = None
    instructor_payment: Decimal | None = None
    profit: Decimal | None = None
    status_reason: str | None = None
    topic: str | None = None
    rescheduled_to_id: UUID | None = None
    rescheduled_from_id: UUID | None = None
    status_updated_at: datetime | None = None
    status_updated_by_id: UUID | None = None


class RecalculationStatus(str, Enum):
    RECALCULATED = "recalculated"
    CALCULATION_SKIPPED = "calculation_skipped"


@dataclass(frozen=True)
class RecalculationResult:
    """Outcome of a recalculation request.

    ``settlement`` is None when the idempotence guard skipped the meeting.
    """

    meeting_id: UUID
    status: RecalculationStatus
    previous_revenue: Decimal | None
    settlement: SettlementResult | None = None

    @property
    def skipped(self) -> bool:
        return self.status == RecalculationStatus.CALCULATION_SKIPPED


@dataclass(frozen=True)
class PostponementResult:
    original: MeetingView
    successor: MeetingView


@dataclass(frozen=True)
class CounterCheck:
    """Stored cycle counters next to the counts derived from meeting rows."""

    cycle_id: UUID
    total_meetings: int
    completed_meetings: int
    remaining_meetings: int
    derived_completed: int

    @property
    def is_balanced(self) -> bool:
        return self.completed_meetings + self.remaining_meetings == self.total_meetings

    @property
    def matches_meetings(self) -> bool:
        return self.completed_meetings == self.derived_completed
