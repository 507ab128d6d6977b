"""
Module: settlement_kernel.models.change_request
Responsibility: ORM persistence for instructor change requests (cancel or
    postpone a meeting) and their review.

Architecture position: Kernel > Models.

Invariants enforced:
    - At most one pending request per (meeting, type).  The service checks
      first; a partial unique index backs it up.
    - reviewed_by_id / reviewed_at are set exactly when the request leaves
      pending.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import Base, UUIDString
from settlement_kernel.domain.meeting_status import (
    ChangeRequestStatus,
    ChangeRequestType,
)
from settlement_kernel.models._checks import enum_check


class MeetingChangeRequest(Base):
    """An instructor's request to cancel or postpone a meeting."""

    __tablename__ = "meeting_change_requests"

    __table_args__ = (
        enum_check("type", ChangeRequestType, "ck_change_requests_valid_type"),
        enum_check("status", ChangeRequestStatus, "ck_change_requests_valid_status"),
        Index(
            "ix_change_requests_pending_unique",
            "meeting_id", "type",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    meeting_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("meetings.id"), nullable=False,
    )
    instructor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_date: Mapped[date | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChangeRequestStatus.PENDING.value,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    reviewed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<MeetingChangeRequest {self.id} {self.type} "
            f"meeting={self.meeting_id} status={self.status}>"
        )
