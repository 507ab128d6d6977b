"""
Settlement services - stateful orchestration over the kernel and engines.

``MeetingEngine`` is the transaction-owning facade; every other service here
is flush-only and runs inside the caller's transaction.
"""

from settlement_services.cycle_completion import CycleCompletionService
from settlement_services.forecast_service import ForecastService
from settlement_services.meeting_engine import MeetingEngine
from settlement_services.meeting_lifecycle import MeetingLifecycleService
from settlement_services.reschedule_service import RescheduleService

__all__ = [
    "CycleCompletionService",
    "ForecastService",
    "MeetingEngine",
    "MeetingLifecycleService",
    "RescheduleService",
]
