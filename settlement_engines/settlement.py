"""
settlement_engines.settlement -- Revenue, instructor payment and profit of one meeting.

Responsibility:
    The one place where the settlement formulas live.  Completion,
    recalculation, bulk recalculation and the forecast all delegate here
    instead of re-deriving revenue or payment.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import settlement_kernel.domain and the kernel logger.

Invariants enforced:
    - Identical inputs produce identical outputs; no clock access.
    - Each settled quantity is rounded half-up to a whole currency unit
      exactly once.  Profit is the difference of two rounded quantities.
    - No exception for business conditions: missing prices or rates
      settle to zero.

Failure modes:
    - ``private`` cycles with ``total_meetings <= 0`` settle revenue to 0
      and carry the ``non_positive_total_meetings`` flag.

Usage:
    from settlement_engines.settlement import SettlementCalculator

    result = SettlementCalculator().settle(
        meeting=meeting.to_times(),
        cycle=cycle.to_terms(),
        registrations=[r.to_input() for r in registrations],
        instructor=instructor.to_rates(),
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.dtos import (
    CycleTerms,
    InstructorRates,
    MeetingTimes,
    RegistrationInput,
    SettlementResult,
)
from settlement_kernel.domain.enums import (
    BILLABLE_PRIVATE_STATUSES,
    ActivityType,
    CycleType,
    RegistrationStatus,
)
from settlement_kernel.domain.values import ZERO, round_currency
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")

MINUTES_PER_DAY = 1440
FLAG_NON_POSITIVE_TOTAL = "non_positive_total_meetings"


class SettlementCalculator:
    """
    Pure function calculator for meeting settlement.

    Guarantees:
        - revenue depends only on the cycle terms and registrations.
        - instructor_payment = round(hourly_rate x duration_minutes / 60).
        - profit = revenue - instructor_payment, possibly negative.
    """

    @traced_engine(
        "settlement", "1.0",
        fingerprint_fields=("meeting", "cycle", "registrations", "instructor"),
    )
    def settle(
        self,
        *,
        meeting: MeetingTimes,
        cycle: CycleTerms,
        registrations: Sequence[RegistrationInput],
        instructor: InstructorRates | None,
    ) -> SettlementResult:
        """Settle one meeting.

        Args:
            meeting: Times and activity override of the meeting.
            cycle: Billing terms of the meeting's cycle.
            registrations: All registrations of the cycle (any status).
            instructor: Rate card, or None when no instructor is assigned.
        """
        revenue, flags = self.revenue(cycle, registrations)
        activity_type = self.resolve_activity_type(meeting, cycle)
        hourly_rate = self.hourly_rate(activity_type, instructor)
        duration = self.duration_minutes(meeting, cycle)
        payment = self.payment(hourly_rate, duration)
        profit = revenue - payment

        logger.info("meeting_settled", extra={
            "meeting_id": str(meeting.meeting_id),
            "cycle_type": cycle.type.value,
            "revenue": str(revenue),
            "instructor_payment": str(payment),
            "profit": str(profit),
            "activity_type": activity_type.value,
            "duration_minutes": duration,
        })

        return SettlementResult(
            revenue=revenue,
            instructor_payment=payment,
            profit=profit,
            activity_type=activity_type,
            hourly_rate=hourly_rate,
            duration_minutes=duration,
            flags=flags,
        )

    # ------------------------------------------------------------------
    # Revenue
    # ------------------------------------------------------------------

    def revenue(
        self,
        cycle: CycleTerms,
        registrations: Sequence[RegistrationInput],
    ) -> tuple[Decimal, tuple[str, ...]]:
        """Per-meeting revenue under the cycle's billing model, plus flags."""
        if cycle.type == CycleType.PRIVATE:
            return self._private_revenue(cycle, registrations)
        if cycle.type == CycleType.INSTITUTIONAL_PER_CHILD:
            return self._per_child_revenue(cycle, registrations), ()
        return cycle.meeting_revenue or ZERO, ()

    def _private_revenue(
        self,
        cycle: CycleTerms,
        registrations: Sequence[RegistrationInput],
    ) -> tuple[Decimal, tuple[str, ...]]:
        if cycle.total_meetings <= 0:
            logger.warning("private_revenue_non_positive_total", extra={
                "cycle_id": str(cycle.cycle_id),
                "total_meetings": cycle.total_meetings,
            })
            return ZERO, (FLAG_NON_POSITIVE_TOTAL,)

        billed = sum(
            (r.amount or ZERO for r in registrations
             if r.status in BILLABLE_PRIVATE_STATUSES),
            ZERO,
        )
        return round_currency(billed / Decimal(cycle.total_meetings)), ()

    def _per_child_revenue(
        self,
        cycle: CycleTerms,
        registrations: Sequence[RegistrationInput],
    ) -> Decimal:
        if cycle.price_per_student is None:
            return ZERO
        students = cycle.student_count or sum(
            1 for r in registrations if r.status == RegistrationStatus.ACTIVE
        )
        return round_currency(cycle.price_per_student * students)

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_activity_type(meeting: MeetingTimes, cycle: CycleTerms) -> ActivityType:
        """Meeting override, then cycle setting, then the legacy fallback."""
        if meeting.activity_type is not None:
            return meeting.activity_type
        if cycle.activity_type is not None:
            return cycle.activity_type
        if cycle.is_online:
            return ActivityType.ONLINE
        if cycle.type == CycleType.PRIVATE:
            return ActivityType.PRIVATE_LESSON
        return ActivityType.FRONTAL

    @staticmethod
    def hourly_rate(activity_type: ActivityType, instructor: InstructorRates | None) -> Decimal:
        if instructor is None:
            return ZERO
        if activity_type == ActivityType.ONLINE:
            return instructor.rate_online or instructor.rate_frontal or ZERO
        if activity_type == ActivityType.PRIVATE_LESSON:
            return instructor.rate_private or instructor.rate_frontal or ZERO
        return instructor.rate_frontal or ZERO

    @staticmethod
    def duration_minutes(meeting: MeetingTimes, cycle: CycleTerms) -> int:
        """Actual meeting length when plausible, else the cycle default."""
        if meeting.start_time is not None and meeting.end_time is not None:
            start = meeting.start_time.hour * 60 + meeting.start_time.minute
            end = meeting.end_time.hour * 60 + meeting.end_time.minute
            diff = end - start
            if 0 < diff < MINUTES_PER_DAY:
                return diff
        return cycle.duration_minutes

    @staticmethod
    def payment(hourly_rate: Decimal, duration_minutes: int) -> Decimal:
        return round_currency(hourly_rate * Decimal(duration_minutes) / Decimal(60))
