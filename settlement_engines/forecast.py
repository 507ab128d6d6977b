"""
settlement_engines.forecast -- Revenue and cost projection for scheduled meetings.

Responsibility:
    Turn a ``ForecastInputs`` snapshot into monthly historical figures,
    monthly forecast figures, recurring expense patterns and summary
    statistics.  Per-meeting estimates reuse ``SettlementCalculator`` so
    the forecast never drifts from how meetings are actually settled.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Revenue fallback order: stored revenue > 0, cycle billing rule,
      cycle historical average, global average of cycle averages.
    - Payment fallback order: stored payment > 0, rate card x duration,
      cycle historical average, global average.
    - Only expense patterns with frequency strictly above the threshold are
      projected, as ``avg_amount x frequency`` once per forecast month in
      which the pattern's cycle has scheduled meetings.
    - Confidence is informational.  It is 0 when mean historical revenue
      is 0.

Failure modes:
    - None for business data.  Empty history yields zero averages and zero
      confidence.
"""

from __future__ import annotations

import statistics
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from settlement_engines.settlement import SettlementCalculator
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.enums import MeetingExpenseType
from settlement_kernel.domain.forecast import (
    CycleExpenseInput,
    ForecastInputs,
    ForecastWindow,
    HistoricalMeeting,
    PlannedMeeting,
    month_key,
)
from settlement_kernel.domain.values import ZERO, is_positive, round_cents, round_currency
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.forecast")

DEFAULT_PATTERN_THRESHOLD = Decimal("0.3")
_HUNDRED = Decimal(100)


class EstimateSource(str, Enum):
    """Which fallback produced a forecast estimate."""

    STORED = "stored"
    CYCLE_RULE = "cycle_rule"
    RATE_CARD = "rate_card"
    CYCLE_AVERAGE = "cycle_average"
    GLOBAL_AVERAGE = "global_average"
    NONE = "none"


@dataclass(frozen=True)
class MeetingEstimate:
    meeting_id: UUID
    cycle_id: UUID
    scheduled_date: date
    revenue: Decimal
    revenue_source: EstimateSource
    instructor_payment: Decimal
    payment_source: EstimateSource


@dataclass(frozen=True)
class MonthlyFigures:
    """Revenue and cost of one calendar month."""

    month: str
    revenue: Decimal
    instructor_payments: Decimal
    cycle_expenses: Decimal
    meeting_expenses: Decimal
    meeting_count: int
    is_historical: bool

    @property
    def total_expenses(self) -> Decimal:
        return self.instructor_payments + self.cycle_expenses + self.meeting_expenses

    @property
    def profit(self) -> Decimal:
        return self.revenue - self.total_expenses


@dataclass(frozen=True)
class ExpensePattern:
    """A meeting expense that recurs for one cycle."""

    cycle_id: UUID
    cycle_name: str | None
    type: MeetingExpenseType
    description: str | None
    avg_amount: Decimal
    frequency: Decimal
    months: tuple[str, ...]

    @property
    def projected_amount(self) -> Decimal:
        return self.avg_amount * self.frequency


@dataclass(frozen=True)
class ForecastSummary:
    avg_monthly_revenue: Decimal
    avg_monthly_expenses: Decimal
    avg_monthly_profit: Decimal
    revenue_std_dev: Decimal
    expenses_std_dev: Decimal
    profit_std_dev: Decimal
    confidence: int


@dataclass(frozen=True)
class ForecastReport:
    window: ForecastWindow
    historical: tuple[MonthlyFigures, ...]
    forecast: tuple[MonthlyFigures, ...]
    patterns: tuple[ExpensePattern, ...]
    summary: ForecastSummary
    estimates: tuple[MeetingEstimate, ...] = ()


class _MonthAccumulator:
    """Mutable running totals for one month; frozen into MonthlyFigures."""

    def __init__(self, month: str, is_historical: bool):
        self.month = month
        self.is_historical = is_historical
        self.revenue = ZERO
        self.instructor_payments = ZERO
        self.cycle_expenses = ZERO
        self.meeting_expenses = ZERO
        self.meeting_count = 0

    def freeze(self) -> MonthlyFigures:
        return MonthlyFigures(
            month=self.month,
            revenue=round_cents(self.revenue),
            instructor_payments=round_cents(self.instructor_payments),
            cycle_expenses=round_cents(self.cycle_expenses),
            meeting_expenses=round_cents(self.meeting_expenses),
            meeting_count=self.meeting_count,
            is_historical=self.is_historical,
        )


class ForecastCalculator:
    """
    Pure function calculator for forecasts.

    Contract:
        No I/O, no clock.  The window and all reference data arrive in
        ``ForecastInputs``.
    """

    def __init__(
        self,
        settlement: SettlementCalculator | None = None,
        pattern_frequency_threshold: Decimal = DEFAULT_PATTERN_THRESHOLD,
    ):
        self._settlement = settlement or SettlementCalculator()
        self._threshold = pattern_frequency_threshold

    @traced_engine("forecast", "1.0", fingerprint_fields=("inputs",))
    def forecast(self, *, inputs: ForecastInputs) -> ForecastReport:
        """Build the full report for ``inputs.window``."""
        window = inputs.window
        logger.info("forecast_started", extra={
            "history_start": window.history_start.isoformat(),
            "forecast_end": window.forecast_end.isoformat(),
            "historical_meetings": len(inputs.history),
            "planned_meetings": len(inputs.planned),
        })

        history_keys = window.history_months()
        historical = {key: _MonthAccumulator(key, True) for key in history_keys}
        for meeting in inputs.history:
            bucket = historical.get(month_key(meeting.scheduled_date))
            if bucket is None:
                continue
            bucket.revenue += meeting.revenue or ZERO
            bucket.instructor_payments += meeting.instructor_payment or ZERO
            bucket.meeting_expenses += sum((e.amount for e in meeting.expenses), ZERO)
            bucket.meeting_count += 1

        self._spread_cycle_expenses(
            historical,
            inputs.cycle_expenses,
            [(m.cycle_id, m.scheduled_date, m.revenue or ZERO) for m in inputs.history],
        )

        patterns = [
            p for p in self.mine_patterns(inputs.history, len(history_keys), inputs.cycle_names)
            if p.frequency > self._threshold
        ]

        estimates = self.estimate_meetings(inputs)
        projected = {
            key: _MonthAccumulator(key, False) for key in window.forecast_months()
        }
        active_cycles: dict[str, set[UUID]] = defaultdict(set)
        for estimate in estimates:
            key = month_key(estimate.scheduled_date)
            bucket = projected.get(key)
            if bucket is None:
                continue
            bucket.revenue += estimate.revenue
            bucket.instructor_payments += estimate.instructor_payment
            bucket.meeting_count += 1
            active_cycles[key].add(estimate.cycle_id)

        for pattern in patterns:
            for key, cycles in active_cycles.items():
                if pattern.cycle_id in cycles:
                    projected[key].meeting_expenses += pattern.projected_amount

        self._spread_cycle_expenses(
            projected,
            inputs.cycle_expenses,
            [(e.cycle_id, e.scheduled_date, e.revenue) for e in estimates],
        )

        historical_figures = tuple(historical[key].freeze() for key in history_keys)
        report = ForecastReport(
            window=window,
            historical=historical_figures,
            forecast=tuple(acc.freeze() for acc in projected.values()),
            patterns=tuple(patterns),
            summary=self.summarize(historical_figures),
            estimates=tuple(estimates),
        )

        logger.info("forecast_computed", extra={
            "historical_months": len(report.historical),
            "forecast_months": len(report.forecast),
            "patterns": len(report.patterns),
            "confidence": report.summary.confidence,
        })
        return report

    # ------------------------------------------------------------------
    # Per-meeting estimates
    # ------------------------------------------------------------------

    def estimate_meetings(self, inputs: ForecastInputs) -> list[MeetingEstimate]:
        revenue_avgs = _cycle_averages(inputs.history, lambda m: m.revenue)
        payment_avgs = _cycle_averages(inputs.history, lambda m: m.instructor_payment)
        global_revenue = _mean_or_zero(revenue_avgs.values())
        global_payment = _mean_or_zero(payment_avgs.values())

        estimates = []
        for planned in inputs.planned:
            revenue, revenue_source = self._estimate_revenue(
                planned, inputs, revenue_avgs, global_revenue,
            )
            payment, payment_source = self._estimate_payment(
                planned, inputs, payment_avgs, global_payment,
            )
            estimates.append(MeetingEstimate(
                meeting_id=planned.times.meeting_id,
                cycle_id=planned.cycle_id,
                scheduled_date=planned.times.scheduled_date,
                revenue=revenue,
                revenue_source=revenue_source,
                instructor_payment=payment,
                payment_source=payment_source,
            ))
        return estimates

    def _estimate_revenue(
        self,
        planned: PlannedMeeting,
        inputs: ForecastInputs,
        cycle_avgs: dict[UUID, Decimal],
        global_avg: Decimal,
    ) -> tuple[Decimal, EstimateSource]:
        if is_positive(planned.revenue):
            return planned.revenue, EstimateSource.STORED

        cycle = inputs.cycles.get(planned.cycle_id)
        if cycle is not None:
            revenue, _ = self._settlement.revenue(
                cycle, inputs.registrations.get(planned.cycle_id, ()),
            )
            if is_positive(revenue):
                return revenue, EstimateSource.CYCLE_RULE

        return _average_fallback(planned.cycle_id, cycle_avgs, global_avg)

    def _estimate_payment(
        self,
        planned: PlannedMeeting,
        inputs: ForecastInputs,
        cycle_avgs: dict[UUID, Decimal],
        global_avg: Decimal,
    ) -> tuple[Decimal, EstimateSource]:
        if is_positive(planned.instructor_payment):
            return planned.instructor_payment, EstimateSource.STORED

        cycle = inputs.cycles.get(planned.cycle_id)
        instructor_id = planned.instructor_id or inputs.cycle_instructors.get(planned.cycle_id)
        instructor = inputs.instructors.get(instructor_id) if instructor_id else None
        if cycle is not None and instructor is not None:
            activity = self._settlement.resolve_activity_type(planned.times, cycle)
            payment = self._settlement.payment(
                self._settlement.hourly_rate(activity, instructor),
                self._settlement.duration_minutes(planned.times, cycle),
            )
            if is_positive(payment):
                return payment, EstimateSource.RATE_CARD

        return _average_fallback(planned.cycle_id, cycle_avgs, global_avg)

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    @staticmethod
    def mine_patterns(
        history: tuple[HistoricalMeeting, ...],
        history_month_count: int,
        cycle_names: dict[UUID, str] | None = None,
    ) -> list[ExpensePattern]:
        """
        Group approved meeting expenses by (cycle, expense type).

        ``avg_amount`` is the total divided by the number of distinct months
        the expense appeared in; ``frequency`` is that month count divided
        by ``history_month_count``.  Unfiltered; sorted by avg_amount desc.
        """
        if history_month_count <= 0:
            return []

        totals: dict[tuple[UUID, MeetingExpenseType], Decimal] = defaultdict(lambda: ZERO)
        months: dict[tuple[UUID, MeetingExpenseType], set[str]] = defaultdict(set)
        descriptions: dict[tuple[UUID, MeetingExpenseType], str | None] = {}
        for meeting in history:
            key_month = month_key(meeting.scheduled_date)
            for expense in meeting.expenses:
                key = (meeting.cycle_id, expense.type)
                totals[key] += expense.amount
                months[key].add(key_month)
                descriptions.setdefault(key, expense.description)

        names = cycle_names or {}
        patterns = []
        for key, total in totals.items():
            seen = months[key]
            patterns.append(ExpensePattern(
                cycle_id=key[0],
                cycle_name=names.get(key[0]),
                type=key[1],
                description=descriptions.get(key),
                avg_amount=total / Decimal(len(seen)),
                frequency=Decimal(len(seen)) / Decimal(history_month_count),
                months=tuple(sorted(seen)),
            ))
        patterns.sort(key=lambda p: (-p.avg_amount, str(p.cycle_id), p.type.value))
        return patterns

    @staticmethod
    def cycle_expense_amount(expense: CycleExpenseInput, revenue: Decimal) -> Decimal:
        """Percentage of ``revenue``, hours x rate, or the fixed amount."""
        if expense.is_percentage:
            return (expense.percentage or ZERO) / _HUNDRED * revenue
        if expense.hours is not None and expense.rate is not None:
            return expense.hours * expense.rate
        return expense.amount or ZERO

    def _spread_cycle_expenses(
        self,
        buckets: dict[str, _MonthAccumulator],
        expenses: tuple[CycleExpenseInput, ...],
        meetings: list[tuple[UUID, date, Decimal]],
    ) -> None:
        """Divide each cycle expense evenly over that cycle's meetings."""
        by_cycle: dict[UUID, list[tuple[date, Decimal]]] = defaultdict(list)
        for cycle_id, day, revenue in meetings:
            by_cycle[cycle_id].append((day, revenue))

        for expense in expenses:
            cycle_meetings = by_cycle.get(expense.cycle_id)
            if not cycle_meetings:
                continue
            revenue = sum((r for _, r in cycle_meetings), ZERO)
            share = self.cycle_expense_amount(expense, revenue) / Decimal(len(cycle_meetings))
            for day, _ in cycle_meetings:
                bucket = buckets.get(month_key(day))
                if bucket is not None:
                    bucket.cycle_expenses += share

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    @staticmethod
    def summarize(historical: tuple[MonthlyFigures, ...]) -> ForecastSummary:
        revenues = [m.revenue for m in historical]
        expenses = [m.total_expenses for m in historical]
        profits = [m.profit for m in historical]

        mean_revenue = _mean_or_zero(revenues)
        revenue_std = _pstdev_or_zero(revenues)
        return ForecastSummary(
            avg_monthly_revenue=round_currency(mean_revenue),
            avg_monthly_expenses=round_currency(_mean_or_zero(expenses)),
            avg_monthly_profit=round_currency(_mean_or_zero(profits)),
            revenue_std_dev=round_currency(revenue_std),
            expenses_std_dev=round_currency(_pstdev_or_zero(expenses)),
            profit_std_dev=round_currency(_pstdev_or_zero(profits)),
            confidence=confidence(mean_revenue, revenue_std),
        )


def confidence(mean_revenue: Decimal, revenue_std: Decimal) -> int:
    """``100 - min(100, 100 x std / mean)``, floored at 0; 0 for a zero mean."""
    if mean_revenue <= ZERO:
        return 0
    variation = _HUNDRED * revenue_std / mean_revenue
    return int(round_currency(max(ZERO, _HUNDRED - min(_HUNDRED, variation))))


def _cycle_averages(history, amount_of) -> dict[UUID, Decimal]:
    """Average of positive amounts per cycle."""
    sums: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[UUID, int] = defaultdict(int)
    for meeting in history:
        amount = amount_of(meeting)
        if is_positive(amount):
            sums[meeting.cycle_id] += amount
            counts[meeting.cycle_id] += 1
    return {cycle_id: sums[cycle_id] / counts[cycle_id] for cycle_id in sums}


def _average_fallback(
    cycle_id: UUID,
    cycle_avgs: dict[UUID, Decimal],
    global_avg: Decimal,
) -> tuple[Decimal, EstimateSource]:
    if cycle_id in cycle_avgs:
        return round_currency(cycle_avgs[cycle_id]), EstimateSource.CYCLE_AVERAGE
    if is_positive(global_avg):
        return round_currency(global_avg), EstimateSource.GLOBAL_AVERAGE
    return ZERO, EstimateSource.NONE


def _mean_or_zero(values) -> Decimal:
    values = list(values)
    if not values:
        return ZERO
    return statistics.mean(values)


def _pstdev_or_zero(values: list[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return statistics.pstdev(values)
