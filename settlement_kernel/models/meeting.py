"""
Module: settlement_kernel.models.meeting
Responsibility: ORM persistence for meetings, the scheduled occurrences of
    a cycle.

Architecture position: Kernel > Models.

Invariants enforced:
    - status is one of MeetingStatus (CHECK constraint); which changes are
      legal is decided by MEETING_TRANSITIONS in the lifecycle service.
    - revenue / instructor_payment / profit carry a settlement only while
      status == completed; every other state holds zero or NULL.
    - rescheduled_to_id / rescheduled_from_id form a one-way list.  A
      meeting has at most one successor (unique index).
    - deleted_at marks soft-deleted rows.  Selectors never return them.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.enums import ActivityType
from settlement_kernel.domain.meeting_status import MeetingStatus
from settlement_kernel.models._checks import enum_check

if TYPE_CHECKING:
    from settlement_kernel.domain.dtos import MeetingTimes, MeetingView


class Meeting(TrackedBase):
    """One scheduled occurrence of a cycle."""

    __tablename__ = "meetings"

    __table_args__ = (
        enum_check("status", MeetingStatus, "ck_meetings_valid_status"),
        enum_check(
            "activity_type", ActivityType, "ck_meetings_valid_activity_type",
            nullable=True,
        ),
        Index("ix_meetings_cycle_date", "cycle_id", "scheduled_date"),
        Index("ix_meetings_status_date", "status", "scheduled_date"),
        Index("ix_meetings_rescheduled_to", "rescheduled_to_id", unique=True),
    )

    cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("cycles.id"), nullable=False,
    )
    instructor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("instructors.id"), nullable=True,
    )
    scheduled_date: Mapped[date] = mapped_column(nullable=False)
    start_time: Mapped[time | None] = mapped_column(nullable=True)
    end_time: Mapped[time | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=MeetingStatus.SCHEDULED.value,
    )
    activity_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    topic: Mapped[str | None] = mapped_column(String(300), nullable=True)

    revenue: Mapped[Decimal | None] = mapped_column(nullable=True)
    instructor_payment: Mapped[Decimal | None] = mapped_column(nullable=True)
    profit: Mapped[Decimal | None] = mapped_column(nullable=True)

    status_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status_updated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    status_updated_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    rescheduled_to_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("meetings.id"), nullable=True,
    )
    rescheduled_from_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("meetings.id"), nullable=True,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Meeting {self.id} {self.scheduled_date} status={self.status}>"

    @property
    def meeting_status(self) -> MeetingStatus:
        return MeetingStatus(self.status)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_times(self) -> MeetingTimes:
        from settlement_kernel.domain.dtos import MeetingTimes

        return MeetingTimes(
            meeting_id=self.id,
            scheduled_date=self.scheduled_date,
            start_time=self.start_time,
            end_time=self.end_time,
            activity_type=ActivityType(self.activity_type) if self.activity_type else None,
        )

    def to_dto(self) -> MeetingView:
        """Convert ORM model to frozen read model."""
        from settlement_kernel.domain.dtos import MeetingView

        return MeetingView(
            id=self.id,
            cycle_id=self.cycle_id,
            instructor_id=self.instructor_id,
            scheduled_date=self.scheduled_date,
            start_time=self.start_time,
            end_time=self.end_time,
            status=MeetingStatus(self.status),
            activity_type=ActivityType(self.activity_type) if self.activity_type else None,
            revenue=self.revenue,
            instructor_payment=self.instructor_payment,
            profit=self.profit,
            status_reason=self.status_reason,
            topic=self.topic,
            rescheduled_to_id=self.rescheduled_to_id,
            rescheduled_from_id=self.rescheduled_from_id,
            status_updated_at=self.status_updated_at,
            status_updated_by_id=self.status_updated_by_id,
        )
