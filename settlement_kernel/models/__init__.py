"""ORM models. Importing this package registers every table on Base.metadata."""

from settlement_kernel.models.change_request import MeetingChangeRequest
from settlement_kernel.models.cycle import Cycle
from settlement_kernel.models.expense import CycleExpense, MeetingExpense
from settlement_kernel.models.instructor import Instructor
from settlement_kernel.models.meeting import Meeting
from settlement_kernel.models.registration import Registration

__all__ = [
    "Cycle",
    "CycleExpense",
    "Instructor",
    "Meeting",
    "MeetingChangeRequest",
    "MeetingExpense",
    "Registration",
]
