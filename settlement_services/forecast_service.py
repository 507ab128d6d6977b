"""
ForecastService -- loads forecast inputs and runs the forecast engine.

Read-only: nothing is written and nothing is flushed.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_engines.forecast import (
    DEFAULT_PATTERN_THRESHOLD,
    ForecastCalculator,
    ForecastReport,
)
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.forecast import ForecastWindow
from settlement_kernel.logging_config import get_logger
from settlement_kernel.selectors.forecast_selector import ForecastSelector

logger = get_logger("services.forecast")

DEFAULT_HISTORICAL_MONTHS = 6
DEFAULT_FORECAST_MONTHS = 3


class ForecastService:
    """Revenue, payment and expense forecast for all cycles or one cycle."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: ForecastCalculator | None = None,
        historical_months: int = DEFAULT_HISTORICAL_MONTHS,
        forecast_months: int = DEFAULT_FORECAST_MONTHS,
        pattern_frequency_threshold: Decimal = DEFAULT_PATTERN_THRESHOLD,
    ):
        self._selector = ForecastSelector(session)
        self._clock = clock or SystemClock()
        self._calculator = calculator or ForecastCalculator(
            pattern_frequency_threshold=pattern_frequency_threshold,
        )
        self._historical_months = historical_months
        self._forecast_months = forecast_months

    def default_window(self) -> ForecastWindow:
        return ForecastWindow.months_ahead(
            self._clock.today(),
            forecast_months=self._forecast_months,
            historical_months=self._historical_months,
        )

    def forecast(
        self,
        window: ForecastWindow | None = None,
        cycle_id: UUID | None = None,
    ) -> ForecastReport:
        """
        Forecast over ``window`` (default: the configured number of months
        around today), optionally restricted to one cycle.
        """
        window = window or self.default_window()
        inputs = self._selector.load(window, cycle_id=cycle_id)
        report = self._calculator.forecast(inputs=inputs)
        logger.info("forecast_generated", extra={
            "cycle_id": str(cycle_id) if cycle_id else None,
            "forecast_months": len(report.forecast),
            "patterns": len(report.patterns),
            "confidence": report.summary.confidence,
        })
        return report
