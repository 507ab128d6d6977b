"""
CycleCompletionService tests.
"""

from datetime import date
from decimal import Decimal

import pytest

from settlement_kernel.domain.enums import CycleStatus
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.domain.notifier import NotificationKind
from settlement_services.cycle_completion import CycleCompletionService


@pytest.fixture
def completion(session, notifier, deterministic_clock):
    return CycleCompletionService(session, notifier=notifier, clock=deterministic_clock)


class TestSync:
    def test_completes_when_nothing_remains(self, completion, session, make_cycle, make_meeting, notifier):
        cycle = make_cycle(total_meetings=2, completed_meetings=2, name="Chess")
        make_meeting(
            cycle, status=MeetingStatus.COMPLETED,
            revenue=Decimal("500"), instructor_payment=Decimal("100"), profit=Decimal("400"),
        )
        make_meeting(
            cycle, status=MeetingStatus.COMPLETED, scheduled_date=date(2024, 3, 12),
            revenue=Decimal("500"), instructor_payment=Decimal("150"), profit=Decimal("350"),
        )

        completion.sync(cycle)

        assert cycle.status == CycleStatus.COMPLETED.value
        [payload] = notifier.of_kind(NotificationKind.CYCLE_COMPLETED)
        assert payload["cycle_name"] == "Chess"
        assert Decimal(payload["total_revenue"]) == Decimal("1000")
        assert Decimal(payload["total_instructor_payment"]) == Decimal("250")
        assert Decimal(payload["total_profit"]) == Decimal("750")

    def test_only_future_scheduled_meetings_are_removed(self, completion, session, make_cycle, make_meeting):
        cycle = make_cycle(total_meetings=1, completed_meetings=1)
        done = make_meeting(cycle, status=MeetingStatus.COMPLETED)
        today = make_meeting(cycle, scheduled_date=date(2024, 3, 15))
        later = make_meeting(cycle, scheduled_date=date(2024, 3, 22))
        later_cancelled = make_meeting(
            cycle, scheduled_date=date(2024, 3, 29), status=MeetingStatus.CANCELLED,
        )

        removed = completion.complete_cycle(cycle)

        assert removed == 1
        for meeting in (done, today, later, later_cancelled):
            session.refresh(meeting)
        assert later.deleted_at is not None
        assert done.deleted_at is None
        assert today.deleted_at is None
        assert later_cancelled.deleted_at is None

    def test_active_cycle_with_remaining_meetings_untouched(self, completion, make_cycle, notifier):
        cycle = make_cycle(total_meetings=3, completed_meetings=1)

        completion.sync(cycle)

        assert cycle.status == CycleStatus.ACTIVE.value
        assert notifier.calls == []

    def test_empty_cycle_is_not_completed(self, completion, make_cycle):
        cycle = make_cycle(total_meetings=0)
        completion.sync(cycle)
        assert cycle.status == CycleStatus.ACTIVE.value

    def test_reopens_completed_cycle(self, completion, make_cycle, captured_logs):
        cycle = make_cycle(total_meetings=3, completed_meetings=2, status=CycleStatus.COMPLETED)

        completion.sync(cycle)

        assert cycle.status == CycleStatus.ACTIVE.value
        assert any(r["message"] == "cycle_reopened" for r in captured_logs())
