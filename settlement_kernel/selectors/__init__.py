"""Read-only selectors returning frozen DTOs."""

from settlement_kernel.selectors.base import BaseSelector
from settlement_kernel.selectors.forecast_selector import ForecastSelector
from settlement_kernel.selectors.meeting_selector import MeetingSelector

__all__ = ["BaseSelector", "ForecastSelector", "MeetingSelector"]
