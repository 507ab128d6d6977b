"""
Module: settlement_kernel.models.cycle
Responsibility: ORM persistence for cycles (recurring class series) and
    their progress counters.

Architecture position: Kernel > Models.

Invariants enforced:
    - Counters are non-negative (CHECK constraints).
    - completed_meetings + remaining_meetings == total_meetings is kept by
      CounterReconciler, the only writer of the three counter columns.
      Nothing else in the code base assigns them after creation.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.enums import ActivityType, CycleStatus, CycleType
from settlement_kernel.models._checks import enum_check

if TYPE_CHECKING:
    from settlement_kernel.domain.dtos import CycleTerms


class Cycle(TrackedBase):
    """
    A recurring class series with a billing model.

    Contract:
        ``type`` selects the revenue formula; ``price_per_student``,
        ``meeting_revenue`` and ``student_count`` are read according to it.
        ``activity_type`` (or legacy ``is_online``) is the default delivery
        mode of its meetings.
    """

    __tablename__ = "cycles"

    __table_args__ = (
        enum_check("type", CycleType, "ck_cycles_valid_type"),
        enum_check("status", CycleStatus, "ck_cycles_valid_status"),
        enum_check(
            "activity_type", ActivityType, "ck_cycles_valid_activity_type",
            nullable=True,
        ),
        CheckConstraint("total_meetings >= 0", name="ck_cycles_total_non_negative"),
        CheckConstraint("completed_meetings >= 0", name="ck_cycles_completed_non_negative"),
        CheckConstraint("remaining_meetings >= 0", name="ck_cycles_remaining_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CycleStatus.ACTIVE.value,
    )
    total_meetings: Mapped[int] = mapped_column(nullable=False, default=0)
    completed_meetings: Mapped[int] = mapped_column(nullable=False, default=0)
    remaining_meetings: Mapped[int] = mapped_column(nullable=False, default=0)
    price_per_student: Mapped[Decimal | None] = mapped_column(nullable=True)
    meeting_revenue: Mapped[Decimal | None] = mapped_column(nullable=True)
    student_count: Mapped[int | None] = mapped_column(nullable=True)
    duration_minutes: Mapped[int] = mapped_column(nullable=False, default=60)
    activity_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    instructor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("instructors.id"), nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Cycle {self.id} {self.type} "
            f"{self.completed_meetings}/{self.total_meetings}>"
        )

    def to_terms(self) -> CycleTerms:
        """Convert to the calculator's frozen input record."""
        from settlement_kernel.domain.dtos import CycleTerms

        return CycleTerms(
            cycle_id=self.id,
            type=CycleType(self.type),
            total_meetings=self.total_meetings,
            price_per_student=self.price_per_student,
            meeting_revenue=self.meeting_revenue,
            student_count=self.student_count,
            duration_minutes=self.duration_minutes or 60,
            activity_type=ActivityType(self.activity_type) if self.activity_type else None,
            is_online=bool(self.is_online),
        )
