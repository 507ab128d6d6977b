"""
Module: settlement_kernel.models.instructor
Responsibility: ORM persistence for instructors and their hourly rate card.

Architecture position: Kernel > Models.  Read-only input to settlement;
    instructor records are maintained by the CRM layer.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from settlement_kernel.domain.dtos import InstructorRates


class Instructor(TrackedBase):
    """An instructor with up to three hourly rates."""

    __tablename__ = "instructors"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    rate_frontal: Mapped[Decimal | None] = mapped_column(nullable=True)
    rate_online: Mapped[Decimal | None] = mapped_column(nullable=True)
    rate_private: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Instructor {self.id} {self.name}>"

    def to_rates(self) -> InstructorRates:
        from settlement_kernel.domain.dtos import InstructorRates

        return InstructorRates(
            instructor_id=self.id,
            rate_frontal=self.rate_frontal,
            rate_online=self.rate_online,
            rate_private=self.rate_private,
        )
