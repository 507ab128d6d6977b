"""
ForecastService tests against a seeded database.

Tests cover:
- Default window from the clock
- Only completed history, approved expenses and live scheduled meetings are read
- Restricting the forecast to one cycle
"""

from datetime import date
from decimal import Decimal

import pytest

from settlement_engines.forecast import EstimateSource
from settlement_kernel.domain.enums import ExpenseStatus, MeetingExpenseType
from settlement_kernel.domain.forecast import ForecastWindow
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.models.expense import MeetingExpense
from settlement_services.forecast_service import ForecastService


@pytest.fixture
def forecast_service(session, deterministic_clock):
    return ForecastService(session, clock=deterministic_clock)


@pytest.fixture
def seeded(session, make_instructor, make_cycle, make_meeting, deterministic_clock):
    instructor = make_instructor(rate_frontal=Decimal("100"))
    cycle = make_cycle(meeting_revenue=Decimal("500"), instructor=instructor)

    for day in (date(2024, 1, 9), date(2024, 2, 6), date(2024, 3, 5)):
        meeting = make_meeting(
            cycle, scheduled_date=day, status=MeetingStatus.COMPLETED,
            revenue=Decimal("500"), instructor_payment=Decimal("100"), profit=Decimal("400"),
        )
        session.add(MeetingExpense(
            meeting_id=meeting.id, type=MeetingExpenseType.MATERIALS.value,
            amount=Decimal("60"), status=ExpenseStatus.APPROVED.value,
        ))
        session.add(MeetingExpense(
            meeting_id=meeting.id, type=MeetingExpenseType.TRAVEL.value,
            amount=Decimal("999"), status=ExpenseStatus.PENDING.value,
        ))

    planned = make_meeting(cycle, scheduled_date=date(2024, 4, 2))
    removed = make_meeting(cycle, scheduled_date=date(2024, 4, 9))
    removed.deleted_at = deterministic_clock.now()
    make_meeting(cycle, scheduled_date=date(2024, 4, 16), status=MeetingStatus.CANCELLED)
    make_meeting(cycle, scheduled_date=date(2024, 7, 2))

    other = make_cycle(meeting_revenue=Decimal("300"), name="Drama")
    make_meeting(other, scheduled_date=date(2024, 4, 3))
    session.flush()
    return cycle, other, planned


class TestForecastService:
    def test_default_window(self, forecast_service, seeded):
        report = forecast_service.forecast()

        assert report.window.history_start == date(2023, 9, 1)
        assert report.window.history_end == date(2024, 3, 15)
        assert [m.month for m in report.forecast] == ["2024-04", "2024-05", "2024-06"]
        assert len(report.historical) == 7

    def test_reads_only_live_data(self, forecast_service, seeded):
        cycle, other, planned = seeded

        report = forecast_service.forecast(cycle_id=cycle.id)

        april = report.forecast[0]
        assert april.meeting_count == 1
        assert april.revenue == Decimal("500.00")
        assert april.instructor_payments == Decimal("100.00")

        [estimate] = report.estimates
        assert estimate.meeting_id == planned.id
        assert estimate.revenue_source == EstimateSource.CYCLE_RULE
        assert estimate.payment_source == EstimateSource.RATE_CARD

        [pattern] = report.patterns
        assert pattern.type == MeetingExpenseType.MATERIALS
        assert pattern.avg_amount == Decimal("60")
        # 60 x 3/7
        assert april.meeting_expenses == Decimal("25.71")

    def test_all_cycles(self, forecast_service, seeded):
        report = forecast_service.forecast()
        april = report.forecast[0]
        assert april.meeting_count == 2
        assert april.revenue == Decimal("800.00")

    def test_explicit_window(self, forecast_service, seeded):
        window = ForecastWindow(
            history_start=date(2024, 2, 1),
            history_end=date(2024, 2, 29),
            forecast_start=date(2024, 7, 1),
            forecast_end=date(2024, 8, 1),
        )

        report = forecast_service.forecast(window)

        assert [m.month for m in report.historical] == ["2024-02"]
        assert report.historical[0].revenue == Decimal("500.00")
        assert report.forecast[0].meeting_count == 1
