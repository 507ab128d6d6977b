"""
Kernel Invariants Contract.

These invariants are structural law for the settlement kernel. No setting in
``settlement_config`` may switch them off.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across CounterReconciler, MeetingLifecycleService,
RescheduleService and SafeNotifier.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    COUNTER_BALANCE = "counter_balance"
    """completed_meetings + remaining_meetings == total_meetings for every
    cycle. Enforced by CounterReconciler's atomic paired update."""

    SINGLE_COUNTER_WRITER = "single_counter_writer"
    """Cycle progress counters are written only by CounterReconciler.
    Enforced by tests/architecture/test_kernel_boundary.py."""

    SETTLEMENT_WHILE_COMPLETED = "settlement_while_completed"
    """revenue / instructor_payment / profit are non-zero only while the
    meeting is completed. Enforced by MeetingLifecycleService."""

    ACYCLIC_RESCHEDULE_CHAIN = "acyclic_reschedule_chain"
    """rescheduled_to_id links form a one-way list that never loops.
    Enforced by RescheduleService._link_successor."""

    NOTIFY_NEVER_FAILS_TRANSITION = "notify_never_fails_transition"
    """Notification delivery failures never roll back a transition.
    Enforced by SafeNotifier."""


# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "settlement_services",
    "settlement_config",
    "settlement_batch",
    "settlement_engines",
)
