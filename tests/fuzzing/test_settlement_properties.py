"""
Hypothesis-based property tests.

Properties checked here:
- Settlement: profit is always revenue minus payment; payment is never
  negative; a non-positive meeting length falls back to the cycle default
- Counters: completed + remaining == total after any delta sequence, and
  neither counter goes negative
- Round trip: complete, revert to scheduled, complete again reproduces the
  first settlement and leaves the counters where one completion put them
"""

from datetime import date, time
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from settlement_engines.settlement import SettlementCalculator
from settlement_kernel.domain.dtos import CycleTerms, InstructorRates, MeetingTimes
from settlement_kernel.domain.enums import ActivityType, CycleType
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.services.counter_reconciler import CounterReconciler
from settlement_services.meeting_lifecycle import MeetingLifecycleService

DB_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


@st.composite
def money(draw, max_value="5000"):
    return draw(st.decimals(
        min_value=Decimal("0"),
        max_value=Decimal(max_value),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    ))


@st.composite
def meeting_times(draw):
    start = draw(st.times(max_value=time(23, 59)))
    end = draw(st.times(max_value=time(23, 59)))
    return MeetingTimes(
        meeting_id=uuid4(),
        scheduled_date=date(2024, 3, 10),
        start_time=start.replace(second=0, microsecond=0),
        end_time=end.replace(second=0, microsecond=0),
        activity_type=draw(st.none() | st.sampled_from(ActivityType)),
    )


class TestSettlementProperties:
    @given(
        times=meeting_times(),
        meeting_revenue=money(),
        rate=money("400"),
        duration=st.integers(min_value=1, max_value=480),
    )
    def test_profit_is_revenue_minus_payment(self, times, meeting_revenue, rate, duration):
        cycle = CycleTerms(
            cycle_id=uuid4(),
            type=CycleType.INSTITUTIONAL_FIXED,
            total_meetings=10,
            meeting_revenue=meeting_revenue,
            duration_minutes=duration,
        )
        instructor = InstructorRates(
            instructor_id=uuid4(), rate_frontal=rate, rate_online=rate, rate_private=rate,
        )

        result = SettlementCalculator().settle(
            meeting=times, cycle=cycle, registrations=(), instructor=instructor,
        )

        assert result.profit == result.revenue - result.instructor_payment
        assert result.instructor_payment >= 0
        assert result.duration_minutes > 0

    @given(start=st.times(max_value=time(23, 59)), duration=st.integers(min_value=1, max_value=480))
    def test_non_positive_length_uses_cycle_duration(self, start, duration):
        start = start.replace(second=0, microsecond=0)
        times = MeetingTimes(
            meeting_id=uuid4(),
            scheduled_date=date(2024, 3, 10),
            start_time=start,
            end_time=start,
            activity_type=None,
        )
        cycle = CycleTerms(
            cycle_id=uuid4(),
            type=CycleType.INSTITUTIONAL_FIXED,
            total_meetings=10,
            duration_minutes=duration,
        )

        assert SettlementCalculator.duration_minutes(times, cycle) == duration


class TestCounterProperties:
    @DB_SETTINGS
    @given(
        total=st.integers(min_value=0, max_value=12),
        deltas=st.lists(st.sampled_from([1, -1]), max_size=30),
    )
    def test_counters_stay_balanced(self, session, make_cycle, total, deltas):
        cycle = make_cycle(total_meetings=total)
        reconciler = CounterReconciler(session)

        for delta in deltas:
            refreshed = reconciler.reconcile(cycle.id, delta)
            assert refreshed.completed_meetings + refreshed.remaining_meetings == total
            assert refreshed.completed_meetings >= 0
            assert refreshed.remaining_meetings >= 0


class TestRoundTripProperties:
    @DB_SETTINGS
    @given(meeting_revenue=money(), rate=money("400"))
    def test_complete_revert_complete(
        self, session, notifier, deterministic_clock, make_instructor, make_cycle, make_meeting,
        meeting_revenue, rate,
    ):
        instructor = make_instructor(rate_frontal=rate)
        cycle = make_cycle(total_meetings=5, meeting_revenue=meeting_revenue, instructor=instructor)
        meeting = make_meeting(cycle)
        lifecycle = MeetingLifecycleService(session, notifier=notifier, clock=deterministic_clock)

        first = lifecycle.complete(meeting.id)
        lifecycle.update_status(meeting.id, MeetingStatus.SCHEDULED)
        second = lifecycle.complete(meeting.id)

        assert (second.revenue, second.instructor_payment, second.profit) == (
            first.revenue, first.instructor_payment, first.profit,
        )
        check = lifecycle.reconciler.verify(cycle.id)
        assert (check.completed_meetings, check.remaining_meetings) == (1, 4)
        assert check.matches_meetings
