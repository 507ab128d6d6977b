"""
Settings Loader (``settlement_config.loader``).

Responsibility
--------------
Reads a YAML settings file and parses it into a frozen ``EngineSettings``.
Runtime callers go through ``settlement_config.get_settings()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from settlement_config.schema import LOG_LEVELS, EngineSettings, ForecastSettings

_TOP_LEVEL_KEYS = frozenset({
    "database_url",
    "log_level",
    "negative_profit_alerts",
    "reschedule_interval_days",
    "forecast",
})
_FORECAST_KEYS = frozenset({
    "historical_months",
    "forecast_months",
    "pattern_frequency_threshold",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings document must be a mapping")
    return data


def parse_settings(data: dict[str, Any], base: EngineSettings | None = None) -> EngineSettings:
    """
    Build ``EngineSettings`` from a parsed YAML mapping.

    Keys missing from ``data`` keep their value in ``base`` (or the schema
    default).
    """
    base = base or EngineSettings()
    _reject_unknown(data, _TOP_LEVEL_KEYS, "settings")

    forecast_data = data.get("forecast") or {}
    if not isinstance(forecast_data, dict):
        raise ValueError("forecast must be a mapping")
    _reject_unknown(forecast_data, _FORECAST_KEYS, "forecast")

    forecast = ForecastSettings(
        historical_months=_int(
            forecast_data, "historical_months", base.forecast.historical_months, minimum=0,
        ),
        forecast_months=_int(
            forecast_data, "forecast_months", base.forecast.forecast_months, minimum=1,
        ),
        pattern_frequency_threshold=_threshold(
            forecast_data, base.forecast.pattern_frequency_threshold,
        ),
    )

    settings = EngineSettings(
        database_url=_str(data, "database_url", base.database_url),
        log_level=_log_level(data, base.log_level),
        negative_profit_alerts=_bool(data, "negative_profit_alerts", base.negative_profit_alerts),
        reschedule_interval_days=_int(
            data, "reschedule_interval_days", base.reschedule_interval_days, minimum=1,
        ),
        forecast=forecast,
    )
    return with_checksum(settings)


def with_checksum(settings: EngineSettings) -> EngineSettings:
    """Return ``settings`` carrying the checksum of its own values."""
    return EngineSettings(
        database_url=settings.database_url,
        log_level=settings.log_level,
        negative_profit_alerts=settings.negative_profit_alerts,
        reschedule_interval_days=settings.reschedule_interval_days,
        forecast=settings.forecast,
        checksum=compute_checksum(settings.to_dict()),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


def _reject_unknown(data: dict[str, Any], allowed: frozenset[str], section: str) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown {section} keys: {', '.join(sorted(unknown))}")


def _str(data: dict[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} must be a non-empty string, got {value!r}")
    return value


def _bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value


def _int(data: dict[str, Any], key: str, default: int, minimum: int) -> int:
    value = data.get(key, default)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def _log_level(data: dict[str, Any], default: str) -> str:
    value = _str(data, "log_level", default).upper()
    if value not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
    return value


def _threshold(data: dict[str, Any], default: Decimal) -> Decimal:
    raw = data.get("pattern_frequency_threshold", default)
    if isinstance(raw, bool):
        raise ValueError(f"pattern_frequency_threshold must be a number, got {raw!r}")
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"pattern_frequency_threshold must be a number, got {raw!r}") from None
    if not (Decimal(0) <= value <= Decimal(1)):
        raise ValueError(f"pattern_frequency_threshold must be within [0, 1], got {value}")
    return value
