"""
Meeting status domain types (``settlement_kernel.domain.meeting_status``).

Responsibility
--------------
The meeting lifecycle state machine as data: the status enum, the table of
legal transitions, and the change-request types that move a meeting into
a pending state.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``MEETING_TRANSITIONS`` defines the only valid status changes.
  ``postponed`` and ``cancelled`` have no outgoing edges: a postponed
  meeting lives on through its successor.
* ``completed -> completed`` is the recalculation edge.
"""

from __future__ import annotations

from enum import Enum


class MeetingStatus(str, Enum):
    """Meeting lifecycle states."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"
    PENDING_CANCELLATION = "pending_cancellation"
    PENDING_POSTPONEMENT = "pending_postponement"


MEETING_TRANSITIONS: dict[MeetingStatus, frozenset[MeetingStatus]] = {
    MeetingStatus.SCHEDULED: frozenset({
        MeetingStatus.COMPLETED,
        MeetingStatus.CANCELLED,
        MeetingStatus.POSTPONED,
        MeetingStatus.PENDING_CANCELLATION,
        MeetingStatus.PENDING_POSTPONEMENT,
    }),
    MeetingStatus.PENDING_CANCELLATION: frozenset({
        MeetingStatus.CANCELLED,
        MeetingStatus.SCHEDULED,
    }),
    MeetingStatus.PENDING_POSTPONEMENT: frozenset({
        MeetingStatus.POSTPONED,
        MeetingStatus.SCHEDULED,
    }),
    MeetingStatus.COMPLETED: frozenset({
        MeetingStatus.COMPLETED,
        MeetingStatus.SCHEDULED,
        MeetingStatus.CANCELLED,
        MeetingStatus.POSTPONED,
    }),
    MeetingStatus.CANCELLED: frozenset(),
    MeetingStatus.POSTPONED: frozenset(),
}

PENDING_MEETING_STATUSES: frozenset[MeetingStatus] = frozenset({
    MeetingStatus.PENDING_CANCELLATION,
    MeetingStatus.PENDING_POSTPONEMENT,
})


def can_transition(current: MeetingStatus, target: MeetingStatus) -> bool:
    """Whether ``current -> target`` is in the transition table."""
    return target in MEETING_TRANSITIONS.get(current, frozenset())


class ChangeRequestType(str, Enum):
    """What an instructor asks an admin to approve."""

    CANCEL = "cancel"
    POSTPONE = "postpone"

    @property
    def pending_status(self) -> MeetingStatus:
        """Status the meeting holds while this request awaits review."""
        if self is ChangeRequestType.CANCEL:
            return MeetingStatus.PENDING_CANCELLATION
        return MeetingStatus.PENDING_POSTPONEMENT

    @classmethod
    def for_pending_status(cls, status: MeetingStatus) -> ChangeRequestType:
        """Inverse of ``pending_status``.

        Raises:
            ValueError: If status is not a pending status.
        """
        for request_type in cls:
            if request_type.pending_status == status:
                return request_type
        raise ValueError(f"{status.value} is not a pending status")


class ChangeRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
