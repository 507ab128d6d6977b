"""
Module: settlement_kernel.models.registration
Responsibility: ORM persistence for student registrations in a cycle.
    Read-only input to settlement.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase, UUIDString
from settlement_kernel.domain.enums import RegistrationStatus
from settlement_kernel.models._checks import enum_check

if TYPE_CHECKING:
    from settlement_kernel.domain.dtos import RegistrationInput


class Registration(TrackedBase):
    """A student's enrollment in a cycle."""

    __tablename__ = "registrations"

    __table_args__ = (
        enum_check("status", RegistrationStatus, "ck_registrations_valid_status"),
        Index("ix_registrations_cycle", "cycle_id"),
    )

    cycle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("cycles.id"), nullable=False,
    )
    student_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RegistrationStatus.REGISTERED.value,
    )
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Registration {self.id} cycle={self.cycle_id} status={self.status}>"

    def to_input(self) -> RegistrationInput:
        from settlement_kernel.domain.dtos import RegistrationInput

        return RegistrationInput(
            status=RegistrationStatus(self.status),
            amount=self.amount,
        )
