"""
Typed Exception Hierarchy for the Settlement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Lifecycle operations are called one at a time by the HTTP layer and in bulk
by the BulkOperationRunner. Both need to tell a missing meeting apart from an
illegal status change without parsing message strings:

  - The HTTP layer maps ``code`` to a response status.
  - The bulk runner records ``code`` and the message per failed item.
  - Logs carry the structured attributes (``exc_current_status`` ...).

Every exception therefore has:
  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SettlementKernelError (base)
    |
    +-- NotFoundError
    |   +-- MeetingNotFoundError
    |   +-- CycleNotFoundError
    |   +-- InstructorNotFoundError
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |   +-- DuplicateRequestError
    |   +-- RescheduleChainError
    |
    +-- BulkOperationError
        +-- InvalidBulkRequestError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                     | When Raised
-----------|--------------------------|------------------------------------------
Not found  | MEETING_NOT_FOUND        | Meeting ID doesn't exist (or soft-deleted)
           | CYCLE_NOT_FOUND          | Cycle ID doesn't exist
           | INSTRUCTOR_NOT_FOUND     | Instructor ID doesn't exist
-----------|--------------------------|------------------------------------------
Lifecycle  | INVALID_TRANSITION       | Status change not in MEETING_TRANSITIONS
           | DUPLICATE_REQUEST        | Pending change request of same type exists
           | RESCHEDULE_CHAIN_BROKEN  | Successor link would form a loop
-----------|--------------------------|------------------------------------------
Bulk       | INVALID_BULK_REQUEST     | Empty id list / unknown operation / status

A skipped recalculation is NOT an error. It is reported as
``RecalculationStatus.CALCULATION_SKIPPED`` on the returned result.

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        lifecycle.complete(meeting_id, actor_id=actor_id)
    except InvalidTransitionError as e:
        api_response(409, code=e.code, current=e.current_status)
    except NotFoundError as e:
        api_response(404, code=e.code)
"""


class SettlementKernelError(Exception):
    """
    Base exception for all settlement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SETTLEMENT_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(SettlementKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class MeetingNotFoundError(NotFoundError):
    """Meeting with given ID was not found (or has been soft-deleted)."""

    code: str = "MEETING_NOT_FOUND"

    def __init__(self, meeting_id: str):
        self.meeting_id = meeting_id
        super().__init__(f"Meeting not found: {meeting_id}")


class CycleNotFoundError(NotFoundError):
    """Cycle with given ID was not found."""

    code: str = "CYCLE_NOT_FOUND"

    def __init__(self, cycle_id: str):
        self.cycle_id = cycle_id
        super().__init__(f"Cycle not found: {cycle_id}")


class InstructorNotFoundError(NotFoundError):
    """Instructor with given ID was not found."""

    code: str = "INSTRUCTOR_NOT_FOUND"

    def __init__(self, instructor_id: str):
        self.instructor_id = instructor_id
        super().__init__(f"Instructor not found: {instructor_id}")


# Lifecycle exceptions


class LifecycleError(SettlementKernelError):
    """Base exception for meeting lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """Requested status change is not allowed from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, current_status: str, requested_status: str, meeting_id: str | None = None):
        self.current_status = current_status
        self.requested_status = requested_status
        self.meeting_id = meeting_id
        target = f" for meeting {meeting_id}" if meeting_id else ""
        super().__init__(
            f"Invalid transition{target}: {current_status} -> {requested_status}"
        )


class DuplicateRequestError(LifecycleError):
    """A pending change request of the same type already exists."""

    code: str = "DUPLICATE_REQUEST"

    def __init__(self, meeting_id: str, request_type: str):
        self.meeting_id = meeting_id
        self.request_type = request_type
        super().__init__(
            f"Meeting {meeting_id} already has a pending {request_type} request"
        )


class RescheduleChainError(LifecycleError):
    """Linking a successor would make the reschedule chain loop."""

    code: str = "RESCHEDULE_CHAIN_BROKEN"

    def __init__(self, meeting_id: str, reason: str):
        self.meeting_id = meeting_id
        self.reason = reason
        super().__init__(f"Reschedule chain error at meeting {meeting_id}: {reason}")


# Bulk exceptions


class BulkOperationError(SettlementKernelError):
    """Base exception for bulk operation errors."""

    code: str = "BULK_OPERATION_ERROR"


class InvalidBulkRequestError(BulkOperationError):
    """The bulk call as a whole is malformed. No item was processed."""

    code: str = "INVALID_BULK_REQUEST"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid bulk request: {reason}")
