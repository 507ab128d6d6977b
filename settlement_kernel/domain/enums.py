"""Status and category enums shared by models, engines and services."""

from enum import Enum


class CycleType(str, Enum):
    """Billing model of a cycle."""

    PRIVATE = "private"
    INSTITUTIONAL_PER_CHILD = "institutional_per_child"
    INSTITUTIONAL_FIXED = "institutional_fixed"


class CycleStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class ActivityType(str, Enum):
    """How a meeting is delivered. Selects the instructor's hourly rate."""

    ONLINE = "online"
    FRONTAL = "frontal"
    PRIVATE_LESSON = "private_lesson"


class RegistrationStatus(str, Enum):
    REGISTERED = "registered"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TRIAL = "trial"


# Registrations whose amount is billed for a private cycle.
BILLABLE_PRIVATE_STATUSES: frozenset[RegistrationStatus] = frozenset({
    RegistrationStatus.REGISTERED,
    RegistrationStatus.ACTIVE,
})


class CycleExpenseType(str, Enum):
    MATERIALS = "materials"
    WRAPAROUND_HOURS = "wraparound_hours"
    EQUIPMENT = "equipment"
    ADDITIONAL_INSTRUCTOR = "additional_instructor"
    OTHER = "other"


class MeetingExpenseType(str, Enum):
    MATERIALS = "materials"
    EQUIPMENT = "equipment"
    EXTRA_INSTRUCTOR = "extra_instructor"
    TRAVEL = "travel"
    OTHER = "other"


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
