"""Kernel domain layer - pure value objects, enums and the clock."""

from settlement_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SystemClock,
)
from settlement_kernel.domain.dtos import (
    CounterCheck,
    CycleTerms,
    InstructorRates,
    MeetingTimes,
    MeetingView,
    PostponementResult,
    RecalculationResult,
    RecalculationStatus,
    RegistrationInput,
    SettlementResult,
)
from settlement_kernel.domain.enums import (
    ActivityType,
    CycleExpenseType,
    CycleStatus,
    CycleType,
    ExpenseStatus,
    MeetingExpenseType,
    RegistrationStatus,
)
from settlement_kernel.domain.meeting_status import (
    MEETING_TRANSITIONS,
    ChangeRequestStatus,
    ChangeRequestType,
    MeetingStatus,
    can_transition,
)
from settlement_kernel.domain.notifier import (
    LoggingNotifier,
    NotificationKind,
    Notifier,
    SafeNotifier,
)

__all__ = [
    "ActivityType",
    "ChangeRequestStatus",
    "ChangeRequestType",
    "Clock",
    "CounterCheck",
    "CycleExpenseType",
    "CycleStatus",
    "CycleTerms",
    "CycleType",
    "DeterministicClock",
    "ExpenseStatus",
    "InstructorRates",
    "LoggingNotifier",
    "MEETING_TRANSITIONS",
    "MeetingExpenseType",
    "MeetingStatus",
    "MeetingTimes",
    "MeetingView",
    "NotificationKind",
    "Notifier",
    "PostponementResult",
    "RecalculationResult",
    "RecalculationStatus",
    "RegistrationInput",
    "RegistrationStatus",
    "SafeNotifier",
    "SettlementResult",
    "SystemClock",
    "can_transition",
]
