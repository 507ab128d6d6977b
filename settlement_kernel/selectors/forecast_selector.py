"""
Module: settlement_kernel.selectors.forecast_selector
Responsibility: Load the read-only snapshot a forecast is computed from.

Takes no locks.  A forecast running next to lifecycle writes may see a
slightly stale picture; forecasts are advisory.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select

from settlement_kernel.domain.enums import (
    CycleExpenseType,
    ExpenseStatus,
    MeetingExpenseType,
)
from settlement_kernel.domain.forecast import (
    CycleExpenseInput,
    ExpenseRecord,
    ForecastInputs,
    ForecastWindow,
    HistoricalMeeting,
    PlannedMeeting,
)
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.models.cycle import Cycle
from settlement_kernel.models.expense import CycleExpense, MeetingExpense
from settlement_kernel.models.instructor import Instructor
from settlement_kernel.models.meeting import Meeting
from settlement_kernel.models.registration import Registration
from settlement_kernel.selectors.base import BaseSelector


class ForecastSelector(BaseSelector[Meeting]):
    """Builds ``ForecastInputs`` for a window, optionally for one cycle."""

    def load(self, window: ForecastWindow, cycle_id: UUID | None = None) -> ForecastInputs:
        history_rows = self._meetings(
            MeetingStatus.COMPLETED,
            Meeting.scheduled_date >= window.history_start,
            Meeting.scheduled_date <= window.history_end,
            cycle_id=cycle_id,
        )
        planned_rows = self._meetings(
            MeetingStatus.SCHEDULED,
            Meeting.scheduled_date >= window.forecast_start,
            Meeting.scheduled_date < window.forecast_end,
            cycle_id=cycle_id,
        )

        expenses = self._approved_expenses([m.id for m in history_rows])
        history = tuple(
            HistoricalMeeting(
                meeting_id=m.id,
                cycle_id=m.cycle_id,
                scheduled_date=m.scheduled_date,
                revenue=m.revenue,
                instructor_payment=m.instructor_payment,
                expenses=tuple(expenses.get(m.id, ())),
            )
            for m in history_rows
        )
        planned = tuple(
            PlannedMeeting(
                times=m.to_times(),
                cycle_id=m.cycle_id,
                instructor_id=m.instructor_id,
                revenue=m.revenue,
                instructor_payment=m.instructor_payment,
            )
            for m in planned_rows
        )

        cycle_ids = {m.cycle_id for m in history_rows} | {m.cycle_id for m in planned_rows}
        cycles = self._cycles(cycle_ids)
        instructor_ids = {m.instructor_id for m in planned_rows if m.instructor_id}
        instructor_ids |= {c.instructor_id for c in cycles if c.instructor_id}

        return ForecastInputs(
            window=window,
            history=history,
            planned=planned,
            cycles={c.id: c.to_terms() for c in cycles},
            cycle_names={c.id: c.name for c in cycles},
            cycle_instructors={c.id: c.instructor_id for c in cycles if c.instructor_id},
            instructors=self._instructors(instructor_ids),
            registrations=self._registrations({m.cycle_id for m in planned_rows}),
            cycle_expenses=self._cycle_expenses(cycle_ids),
        )

    def _meetings(self, status: MeetingStatus, *date_filters, cycle_id: UUID | None) -> list[Meeting]:
        stmt = select(Meeting).where(
            Meeting.status == status.value,
            Meeting.deleted_at.is_(None),
            *date_filters,
        )
        if cycle_id is not None:
            stmt = stmt.where(Meeting.cycle_id == cycle_id)
        stmt = stmt.order_by(Meeting.scheduled_date, Meeting.id)
        return list(self.session.scalars(stmt))

    def _approved_expenses(self, meeting_ids: list[UUID]) -> dict[UUID, list[ExpenseRecord]]:
        grouped: dict[UUID, list[ExpenseRecord]] = defaultdict(list)
        if not meeting_ids:
            return grouped
        rows = self.session.scalars(
            select(MeetingExpense)
            .where(
                MeetingExpense.meeting_id.in_(meeting_ids),
                MeetingExpense.status == ExpenseStatus.APPROVED.value,
            )
            .order_by(MeetingExpense.id)
        )
        for row in rows:
            grouped[row.meeting_id].append(ExpenseRecord(
                type=MeetingExpenseType(row.type),
                amount=row.amount,
                description=row.description,
            ))
        return grouped

    def _cycles(self, cycle_ids: set[UUID]) -> list[Cycle]:
        if not cycle_ids:
            return []
        return list(self.session.scalars(select(Cycle).where(Cycle.id.in_(cycle_ids))))

    def _instructors(self, instructor_ids: set[UUID]):
        if not instructor_ids:
            return {}
        rows = self.session.scalars(
            select(Instructor).where(Instructor.id.in_(instructor_ids))
        )
        return {row.id: row.to_rates() for row in rows}

    def _registrations(self, cycle_ids: set[UUID]):
        grouped: dict[UUID, list] = defaultdict(list)
        if cycle_ids:
            rows = self.session.scalars(
                select(Registration).where(Registration.cycle_id.in_(cycle_ids))
            )
            for row in rows:
                grouped[row.cycle_id].append(row.to_input())
        return {cycle_id: tuple(items) for cycle_id, items in grouped.items()}

    def _cycle_expenses(self, cycle_ids: set[UUID]) -> tuple[CycleExpenseInput, ...]:
        if not cycle_ids:
            return ()
        rows = self.session.scalars(
            select(CycleExpense)
            .where(CycleExpense.cycle_id.in_(cycle_ids))
            .order_by(CycleExpense.id)
        )
        return tuple(
            CycleExpenseInput(
                cycle_id=row.cycle_id,
                type=CycleExpenseType(row.type),
                amount=row.amount,
                hours=row.hours,
                rate=row.rate,
                is_percentage=bool(row.is_percentage),
                percentage=row.percentage,
                description=row.description,
            )
            for row in rows
        )
