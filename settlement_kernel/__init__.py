"""
Settlement Kernel - Meeting Lifecycle & Financial Settlement

The kernel of the education-provider settlement engine:
- ORM models for cycles, meetings, registrations, instructors and expenses
- Meeting status vocabulary and frozen read models
- Atomic cycle progress counters (the only writer of those columns)
- Read-only selectors for meetings, reschedule chains and forecast inputs
- Typed errors and structured logging

The lifecycle state machine and the reschedule workflow live in
settlement_services; the kernel never imports upward.
"""

__version__ = "0.1.0"
