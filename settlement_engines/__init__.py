"""
Settlement engines - pure calculators.

No I/O and no database access.  Inputs and outputs are frozen dataclasses
from ``settlement_kernel.domain`` or defined alongside each engine.
"""

from settlement_engines.forecast import (
    EstimateSource,
    ExpensePattern,
    ForecastCalculator,
    ForecastReport,
    ForecastSummary,
    MeetingEstimate,
    MonthlyFigures,
)
from settlement_engines.settlement import SettlementCalculator
from settlement_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "EstimateSource",
    "ExpensePattern",
    "ForecastCalculator",
    "ForecastReport",
    "ForecastSummary",
    "MeetingEstimate",
    "MonthlyFigures",
    "SettlementCalculator",
    "compute_input_fingerprint",
    "traced_engine",
]
