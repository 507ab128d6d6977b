"""
ForecastCalculator tests.

Tests cover:
- Revenue and payment estimate fallback chains
- Expense pattern mining and the frequency threshold
- Pattern projection only into months where the cycle has meetings
- Cycle expense bases and spreading
- Summary statistics and confidence
"""

from datetime import date, time
from decimal import Decimal
from uuid import uuid4

from settlement_engines.forecast import (
    EstimateSource,
    ForecastCalculator,
    confidence,
)
from settlement_kernel.domain.dtos import CycleTerms, InstructorRates, MeetingTimes
from settlement_kernel.domain.enums import CycleExpenseType, CycleType, MeetingExpenseType
from settlement_kernel.domain.forecast import (
    CycleExpenseInput,
    ExpenseRecord,
    ForecastInputs,
    ForecastWindow,
    HistoricalMeeting,
    PlannedMeeting,
)

# Dec 2023 .. 15 Mar 2024 history (4 months), Apr + May 2024 forecast.
WINDOW = ForecastWindow(
    history_start=date(2023, 12, 1),
    history_end=date(2024, 3, 15),
    forecast_start=date(2024, 4, 1),
    forecast_end=date(2024, 6, 1),
)


def _history(cycle_id, day, revenue=None, payment=None, expenses=()):
    return HistoricalMeeting(
        meeting_id=uuid4(),
        cycle_id=cycle_id,
        scheduled_date=day,
        revenue=revenue,
        instructor_payment=payment,
        expenses=tuple(expenses),
    )


def _planned(cycle_id, day, revenue=None, payment=None, instructor_id=None):
    return PlannedMeeting(
        times=MeetingTimes(
            meeting_id=uuid4(),
            scheduled_date=day,
            start_time=time(10, 0),
            end_time=time(11, 0),
        ),
        cycle_id=cycle_id,
        instructor_id=instructor_id,
        revenue=revenue,
        instructor_payment=payment,
    )


def _terms(cycle_id, **kwargs):
    kwargs.setdefault("type", CycleType.INSTITUTIONAL_FIXED)
    kwargs.setdefault("total_meetings", 10)
    return CycleTerms(cycle_id=cycle_id, **kwargs)


class TestWindow:
    def test_months_ahead_default_window(self):
        window = ForecastWindow.months_ahead(date(2024, 3, 15), forecast_months=3, historical_months=6)
        assert window.history_start == date(2023, 9, 1)
        assert window.history_end == date(2024, 3, 15)
        assert window.forecast_start == date(2024, 4, 1)
        assert window.forecast_end == date(2024, 7, 1)
        assert window.history_months() == [
            "2023-09", "2023-10", "2023-11", "2023-12", "2024-01", "2024-02", "2024-03",
        ]
        assert window.forecast_months() == ["2024-04", "2024-05", "2024-06"]

    def test_months_ahead_crosses_year_end(self):
        window = ForecastWindow.months_ahead(date(2024, 11, 20), forecast_months=2, historical_months=0)
        assert window.history_start == date(2024, 11, 1)
        assert window.forecast_months() == ["2024-12", "2025-01"]


class TestRevenueEstimates:
    def setup_method(self):
        self.calc = ForecastCalculator()

    def test_stored_revenue_wins(self):
        cycle_id = uuid4()
        inputs = ForecastInputs(
            window=WINDOW,
            history=(),
            planned=(_planned(cycle_id, date(2024, 4, 3), revenue=Decimal("700")),),
            cycles={cycle_id: _terms(cycle_id, meeting_revenue=Decimal("500"))},
        )
        [estimate] = self.calc.estimate_meetings(inputs)
        assert estimate.revenue == Decimal("700")
        assert estimate.revenue_source == EstimateSource.STORED

    def test_cycle_rule_when_nothing_stored(self):
        cycle_id = uuid4()
        inputs = ForecastInputs(
            window=WINDOW,
            history=(),
            planned=(_planned(cycle_id, date(2024, 4, 3)),),
            cycles={cycle_id: _terms(cycle_id, meeting_revenue=Decimal("500"))},
        )
        [estimate] = self.calc.estimate_meetings(inputs)
        assert estimate.revenue == Decimal("500")
        assert estimate.revenue_source == EstimateSource.CYCLE_RULE

    def test_cycle_average_when_rule_yields_zero(self):
        cycle_id = uuid4()
        inputs = ForecastInputs(
            window=WINDOW,
            history=(
                _history(cycle_id, date(2024, 1, 10), revenue=Decimal("300")),
                _history(cycle_id, date(2024, 2, 10), revenue=Decimal("500")),
                _history(cycle_id, date(2024, 2, 17), revenue=Decimal("0")),
            ),
            planned=(_planned(cycle_id, date(2024, 4, 3)),),
            cycles={cycle_id: _terms(cycle_id, meeting_revenue=None)},
        )
        [estimate] = self.calc.estimate_meetings(inputs)
        assert estimate.revenue == Decimal("400")
        assert estimate.revenue_source == EstimateSource.CYCLE_AVERAGE

    def test_global_average_for_cycle_without_history(self):
        a, b, new = uuid4(), uuid4(), uuid4()
        inputs = ForecastInputs(
            window=WINDOW,
            history=(
                _history(a, date(2024, 1, 10), revenue=Decimal("200")),
                _history(b, date(2024, 1, 11), revenue=Decimal("400")),
                _history(b, date(2024, 1, 18), revenue=Decimal("400")),
            ),
            planned=(_planned(new, date(2024, 4, 3)),),
        )
        [estimate] = self.calc.estimate_meetings(inputs)
        # mean of cycle averages (200, 400), not of meetings
        assert estimate.revenue == Decimal("300")
        assert estimate.revenue_source == EstimateSource.GLOBAL_AVERAGE

    def test_no_data_estimates_zero(self):
        inputs = ForecastInputs(
            window=WINDOW,
            history=(),
            planned=(_planned(uuid4(), date(2024, 4, 3)),),
        )
        [estimate] = self.calc.estimate_meetings(inputs)
        assert estimate.revenue == Decimal("0")
        assert estimate.revenue_source == EstimateSource.NONE


class TestPaymentEstimates:
    def setup_method(self):
        self.calc = ForecastCalculator()

    def test_rate_card_times_duration(self):
        cycle_id, instructor_id = uuid4(), uuid4()
        inputs = ForecastInputs(
            window=WINDOW,
            history=(),
            planned=(_planned(cycle_id, date(2024, 4, 3), instructor_id=instructor_id),),
            cycles={cycle_id: _terms(cycle_id)},
            instructors={
                instructor_id: InstructorRates(instructor_id, rate_frontal=Decimal("120")),
            },
        )
        [estimate] = self.calc.estimate_meetings(inputs)
        assert estimate.instructor_payment == Decimal("120")
        assert estimate.payment_source == EstimateSource.RATE_CARD

    def test_cycle_instructor_used_when_meeting_has_none(self):
        cycle_id, instructor_id = uuid4(), uuid4()
        inputs = ForecastInputs(
            window=WINDOW,
            history=(),
            planned=(_planned(cycle_id, date(2024, 4, 3)),),
            cycles={cycle_id: _terms(cycle_id)},
            cycle_instructors={cycle_id: instructor_id},
            instructors={
                instructor_id: InstructorRates(instructor_id, rate_frontal=Decimal("90")),
            },
        )
        [estimate] = self.calc.estimate_meetings(inputs)
        assert estimate.instructor_payment == Decimal("90")

    def test_cycle_average_when_no_rate_card(self):
        cycle_id = uuid4()
        inputs = ForecastInputs(
            window=WINDOW,
            history=(
                _history(cycle_id, date(2024, 1, 10), payment=Decimal("100")),
                _history(cycle_id, date(2024, 1, 17), payment=Decimal("151")),
            ),
            planned=(_planned(cycle_id, date(2024, 4, 3)),),
            cycles={cycle_id: _terms(cycle_id)},
        )
        [estimate] = self.calc.estimate_meetings(inputs)
        # 125.5 rounds half-up
        assert estimate.instructor_payment == Decimal("126")
        assert estimate.payment_source == EstimateSource.CYCLE_AVERAGE


class TestExpensePatterns:
    def setup_method(self):
        self.calc = ForecastCalculator()
        self.cycle_id = uuid4()
        self.history = (
            _history(self.cycle_id, date(2023, 12, 5), expenses=[
                ExpenseRecord(MeetingExpenseType.MATERIALS, Decimal("100")),
                ExpenseRecord(MeetingExpenseType.TRAVEL, Decimal("40")),
            ]),
            _history(self.cycle_id, date(2024, 1, 9), expenses=[
                ExpenseRecord(MeetingExpenseType.MATERIALS, Decimal("200")),
            ]),
        )

    def test_mining_averages_per_distinct_month(self):
        patterns = self.calc.mine_patterns(self.history, 4, {self.cycle_id: "Robotics"})
        by_type = {p.type: p for p in patterns}

        materials = by_type[MeetingExpenseType.MATERIALS]
        assert materials.avg_amount == Decimal("150")
        assert materials.frequency == Decimal("0.5")
        assert materials.months == ("2023-12", "2024-01")
        assert materials.cycle_name == "Robotics"

        travel = by_type[MeetingExpenseType.TRAVEL]
        assert travel.frequency == Decimal("0.25")

        # sorted by average amount, descending
        assert patterns[0].type == MeetingExpenseType.MATERIALS

    def test_only_patterns_above_threshold_are_projected(self):
        inputs = ForecastInputs(
            window=WINDOW,
            history=self.history,
            planned=(
                _planned(self.cycle_id, date(2024, 4, 3), revenue=Decimal("500")),
                _planned(self.cycle_id, date(2024, 4, 10), revenue=Decimal("500")),
            ),
        )
        report = self.calc.forecast(inputs=inputs)

        assert [p.type for p in report.patterns] == [MeetingExpenseType.MATERIALS]
        april, may = report.forecast
        assert april.month == "2024-04"
        # 150 x 0.5, once for the month regardless of meeting count
        assert april.meeting_expenses == Decimal("75.00")
        assert april.revenue == Decimal("1000.00")
        assert april.meeting_count == 2
        # no meetings in May -> nothing projected
        assert may.meeting_expenses == Decimal("0.00")
        assert may.meeting_count == 0

    def test_threshold_is_configurable(self):
        calc = ForecastCalculator(pattern_frequency_threshold=Decimal("0.2"))
        inputs = ForecastInputs(window=WINDOW, history=self.history, planned=())
        report = calc.forecast(inputs=inputs)
        assert {p.type for p in report.patterns} == {
            MeetingExpenseType.MATERIALS, MeetingExpenseType.TRAVEL,
        }


class TestCycleExpenses:
    def test_amount_bases(self):
        cycle_id = uuid4()
        revenue = Decimal("1000")
        fixed = CycleExpenseInput(cycle_id, CycleExpenseType.MATERIALS, amount=Decimal("250"))
        hourly = CycleExpenseInput(
            cycle_id, CycleExpenseType.WRAPAROUND_HOURS,
            hours=Decimal("3"), rate=Decimal("80"),
        )
        percent = CycleExpenseInput(
            cycle_id, CycleExpenseType.OTHER,
            is_percentage=True, percentage=Decimal("10"),
        )
        assert ForecastCalculator.cycle_expense_amount(fixed, revenue) == Decimal("250")
        assert ForecastCalculator.cycle_expense_amount(hourly, revenue) == Decimal("240")
        assert ForecastCalculator.cycle_expense_amount(percent, revenue) == Decimal("100")

    def test_cycle_expense_spread_over_forecast_meetings(self):
        cycle_id = uuid4()
        inputs = ForecastInputs(
            window=WINDOW,
            history=(),
            planned=(
                _planned(cycle_id, date(2024, 4, 3), revenue=Decimal("500")),
                _planned(cycle_id, date(2024, 4, 24), revenue=Decimal("500")),
                _planned(cycle_id, date(2024, 5, 8), revenue=Decimal("500")),
            ),
            cycle_expenses=(
                CycleExpenseInput(cycle_id, CycleExpenseType.MATERIALS, amount=Decimal("300")),
            ),
        )
        report = ForecastCalculator().forecast(inputs=inputs)
        april, may = report.forecast
        assert april.cycle_expenses == Decimal("200.00")
        assert may.cycle_expenses == Decimal("100.00")


class TestSummary:
    def test_confidence(self):
        assert confidence(Decimal("0"), Decimal("0")) == 0
        assert confidence(Decimal("100"), Decimal("0")) == 100
        assert confidence(Decimal("100"), Decimal("25")) == 75
        assert confidence(Decimal("100"), Decimal("150")) == 0

    def test_empty_history_yields_zero_summary(self):
        report = ForecastCalculator().forecast(
            inputs=ForecastInputs(window=WINDOW, history=(), planned=()),
        )
        assert len(report.historical) == 4
        assert report.summary.avg_monthly_revenue == Decimal("0")
        assert report.summary.confidence == 0

    def test_historical_months_aggregate_revenue_and_costs(self):
        cycle_id = uuid4()
        history = (
            _history(cycle_id, date(2023, 12, 5), Decimal("500"), Decimal("150"), [
                ExpenseRecord(MeetingExpenseType.MATERIALS, Decimal("50")),
            ]),
            _history(cycle_id, date(2024, 1, 9), Decimal("500"), Decimal("150")),
            _history(cycle_id, date(2024, 2, 6), Decimal("500"), Decimal("150")),
            _history(cycle_id, date(2024, 3, 5), Decimal("500"), Decimal("150")),
        )
        report = ForecastCalculator().forecast(
            inputs=ForecastInputs(window=WINDOW, history=history, planned=()),
        )
        december = report.historical[0]
        assert december.month == "2023-12"
        assert december.revenue == Decimal("500.00")
        assert december.total_expenses == Decimal("200.00")
        assert december.profit == Decimal("300.00")
        assert report.summary.avg_monthly_revenue == Decimal("500")
        assert report.summary.revenue_std_dev == Decimal("0")
        assert report.summary.confidence == 100
