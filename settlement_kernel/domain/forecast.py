"""
Forecast inputs -- the read-only snapshot a forecast is computed from.

``ForecastSelector`` fills these records from the database; the pure
``ForecastCalculator`` consumes them.  Keeping them in the kernel domain
lets both sides share one shape without the kernel importing engines.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from settlement_kernel.domain.dtos import (
    CycleTerms,
    InstructorRates,
    MeetingTimes,
    RegistrationInput,
)
from settlement_kernel.domain.enums import CycleExpenseType, MeetingExpenseType


def month_key(day: date) -> str:
    """``YYYY-MM`` bucket of a date."""
    return f"{day.year:04d}-{day.month:02d}"


def add_months(day: date, months: int) -> date:
    """First day of the month ``months`` away from ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


@dataclass(frozen=True)
class ForecastWindow:
    """
    History and forecast date ranges.

    ``history_start`` .. ``history_end`` are inclusive; the forecast covers
    ``forecast_start`` (inclusive) up to ``forecast_end`` (exclusive).
    """

    history_start: date
    history_end: date
    forecast_start: date
    forecast_end: date

    def __post_init__(self) -> None:
        if self.history_start > self.history_end:
            raise ValueError("history_start must not be after history_end")
        if self.forecast_start >= self.forecast_end:
            raise ValueError("forecast_start must be before forecast_end")

    @classmethod
    def months_ahead(
        cls,
        today: date,
        forecast_months: int = 3,
        historical_months: int = 6,
    ) -> ForecastWindow:
        """
        Default window: the previous ``historical_months`` whole months plus
        the current month up to ``today``, then the next ``forecast_months``
        whole months.
        """
        if forecast_months < 1:
            raise ValueError("forecast_months must be at least 1")
        if historical_months < 0:
            raise ValueError("historical_months must not be negative")
        current_month = today.replace(day=1)
        return cls(
            history_start=add_months(current_month, -historical_months),
            history_end=today,
            forecast_start=add_months(current_month, 1),
            forecast_end=add_months(current_month, forecast_months + 1),
        )

    def history_months(self) -> list[str]:
        return _month_keys(self.history_start, self.history_end, inclusive=True)

    def forecast_months(self) -> list[str]:
        return _month_keys(self.forecast_start, self.forecast_end, inclusive=False)


def _month_keys(start: date, end: date, inclusive: bool) -> list[str]:
    keys: list[str] = []
    cursor = start.replace(day=1)
    while (cursor <= end) if inclusive else (cursor < end):
        keys.append(month_key(cursor))
        cursor = add_months(cursor, 1)
    return keys


@dataclass(frozen=True)
class ExpenseRecord:
    """An approved ad-hoc expense of a completed meeting."""

    type: MeetingExpenseType
    amount: Decimal
    description: str | None = None


@dataclass(frozen=True)
class HistoricalMeeting:
    """A completed meeting inside the history window."""

    meeting_id: UUID
    cycle_id: UUID
    scheduled_date: date
    revenue: Decimal | None
    instructor_payment: Decimal | None
    expenses: tuple[ExpenseRecord, ...] = ()


@dataclass(frozen=True)
class PlannedMeeting:
    """A scheduled meeting inside the forecast window."""

    times: MeetingTimes
    cycle_id: UUID
    instructor_id: UUID | None
    revenue: Decimal | None = None
    instructor_payment: Decimal | None = None


@dataclass(frozen=True)
class CycleExpenseInput:
    cycle_id: UUID
    type: CycleExpenseType
    amount: Decimal | None = None
    hours: Decimal | None = None
    rate: Decimal | None = None
    is_percentage: bool = False
    percentage: Decimal | None = None
    description: str | None = None


@dataclass(frozen=True)
class ForecastInputs:
    """Everything a forecast reads, keyed by id where shared."""

    window: ForecastWindow
    history: tuple[HistoricalMeeting, ...]
    planned: tuple[PlannedMeeting, ...]
    cycles: Mapping[UUID, CycleTerms] = field(default_factory=dict)
    cycle_names: Mapping[UUID, str] = field(default_factory=dict)
    cycle_instructors: Mapping[UUID, UUID] = field(default_factory=dict)
    instructors: Mapping[UUID, InstructorRates] = field(default_factory=dict)
    registrations: Mapping[UUID, tuple[RegistrationInput, ...]] = field(default_factory=dict)
    cycle_expenses: tuple[CycleExpenseInput, ...] = ()
