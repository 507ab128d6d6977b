"""
EngineSettings schema.

Frozen dataclasses the YAML settings file is parsed into.  Defaults here are
the same values shipped in ``defaults.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ForecastSettings:
    """Forecast window sizes and the expense pattern threshold."""

    historical_months: int = 6
    forecast_months: int = 3
    pattern_frequency_threshold: Decimal = Decimal("0.3")


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings of the meeting engine."""

    database_url: str = "sqlite+pysqlite:///:memory:"
    log_level: str = "INFO"
    negative_profit_alerts: bool = True
    reschedule_interval_days: int = 7
    forecast: ForecastSettings = field(default_factory=ForecastSettings)
    checksum: str = ""

    def to_dict(self) -> dict:
        """Plain dict of the settings, excluding the checksum."""
        return {
            "database_url": self.database_url,
            "log_level": self.log_level,
            "negative_profit_alerts": self.negative_profit_alerts,
            "reschedule_interval_days": self.reschedule_interval_days,
            "forecast": {
                "historical_months": self.forecast.historical_months,
                "forecast_months": self.forecast.forecast_months,
                "pattern_frequency_threshold": str(self.forecast.pattern_frequency_threshold),
            },
        }
