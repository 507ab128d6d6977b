"""
Module: settlement_kernel.models.expense
Responsibility: ORM persistence for cycle-level and meeting-level expenses.

Architecture position: Kernel > Models.  Expenses never affect per-meeting
    settlement; they are read by the forecast only.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.enums import (
    CycleExpenseType,
    ExpenseStatus,
    MeetingExpenseType,
)
from settlement_kernel.models._checks import enum_check


class CycleExpense(TrackedBase):
    """
    A recurring cost attached to a cycle.

    Exactly one basis applies: ``is_percentage`` (``percentage`` of cycle
    revenue), ``hours`` x ``rate``, or the fixed ``amount``.
    """

    __tablename__ = "cycle_expenses"

    __table_args__ = (
        enum_check("type", CycleExpenseType, "ck_cycle_expenses_valid_type"),
        Index("ix_cycle_expenses_cycle", "cycle_id"),
    )

    cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("cycles.id"), nullable=False,
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_percentage: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    percentage: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<CycleExpense {self.id} {self.type} cycle={self.cycle_id}>"


class MeetingExpense(TrackedBase):
    """An ad-hoc cost recorded against one meeting."""

    __tablename__ = "meeting_expenses"

    __table_args__ = (
        enum_check("type", MeetingExpenseType, "ck_meeting_expenses_valid_type"),
        enum_check("status", ExpenseStatus, "ck_meeting_expenses_valid_status"),
        Index("ix_meeting_expenses_meeting", "meeting_id"),
    )

    meeting_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("meetings.id"), nullable=False,
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ExpenseStatus.PENDING.value,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<MeetingExpense {self.id} {self.type} {self.amount}>"
