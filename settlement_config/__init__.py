"""
settlement_config -- single public entrypoint for engine settings.

Responsibility:
    ``get_settings()`` is the only way to obtain settings at runtime.  It
    reads the packaged ``defaults.yaml``, overlays an optional YAML file and
    the ``DATABASE_URL`` environment variable, and returns a frozen
    ``EngineSettings``.

Architecture position:
    Configuration.  Sits beside the kernel: the kernel MUST NEVER import
    from ``settlement_config``, and this package imports nothing from the
    other settlement packages.

Failure modes:
    - ``FileNotFoundError`` -- ``config_path`` does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful ``get_settings()`` call emits a
    ``SETTLEMENT_CONFIG_TRACE`` log entry carrying the settings checksum.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from settlement_config.loader import load_yaml_file, parse_settings, with_checksum
from settlement_config.schema import EngineSettings, ForecastSettings

__all__ = ["EngineSettings", "ForecastSettings", "get_settings", "DEFAULTS_PATH"]

_logger = logging.getLogger("settlement_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
DATABASE_URL_ENV = "DATABASE_URL"


def get_settings(config_path: Path | str | None = None) -> EngineSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Optional YAML file; keys it omits keep their defaults.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ValueError: If any value is invalid.
    """
    settings = parse_settings(load_yaml_file(DEFAULTS_PATH))
    source = str(DEFAULTS_PATH)

    if config_path is not None:
        path = Path(config_path)
        settings = parse_settings(load_yaml_file(path), base=settings)
        source = str(path)

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        settings = with_checksum(replace(settings, database_url=env_url))

    _logger.info(
        "SETTLEMENT_CONFIG_TRACE",
        extra={
            "trace_type": "SETTLEMENT_CONFIG_TRACE",
            "source": source,
            "checksum": settings.checksum,
            "database_url_from_env": bool(env_url),
            "log_level": settings.log_level,
            "reschedule_interval_days": settings.reschedule_interval_days,
            "historical_months": settings.forecast.historical_months,
            "forecast_months": settings.forecast.forecast_months,
        },
    )
    return settings
