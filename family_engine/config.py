"""Engine configuration loaded from environment variables.

Values come from the process environment, optionally seeded from a .env
file. Thresholds are family-level unless prefixed with RECORD_.
"""

import os
from typing import Optional, Tuple
from dotenv import load_dotenv
from msgspec import Struct

from family_engine.error_handling import ConfigurationError


class EngineConfig(Struct, frozen=True, kw_only=True):
    """Tunable thresholds and defaults for normalization and assembly."""
    strategic_value_threshold: float = 2_000_000
    high_risk_threshold: float = 2_000_000
    medium_risk_threshold: float = 500_000
    record_high_risk_threshold: float = 500_000
    record_medium_risk_threshold: float = 100_000
    critical_compliance_flag_count: int = 2
    government_markers: Tuple[str, ...] = ("government",)
    default_industry: str = "Business Services"
    default_currency: str = "USD"
    graceful_degradation: bool = True


DEFAULT_CONFIG = EngineConfig()


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw.replace(",", "").replace("_", ""))
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _read_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_file: Optional[str] = None) -> EngineConfig:
    """Build an EngineConfig from the environment.

    Args:
        env_file: Optional .env file to load first (defaults to ./.env if present)

    Returns:
        EngineConfig populated from environment variables

    Raises:
        ConfigurationError: If a variable holds an invalid value
    """
    load_dotenv(env_file)

    markers = os.getenv("GOVERNMENT_MARKERS")
    government_markers = DEFAULT_CONFIG.government_markers
    if markers:
        government_markers = tuple(
            m.strip().lower() for m in markers.split(",") if m.strip()
        )

    config = EngineConfig(
        strategic_value_threshold=_read_float(
            "FAMILY_STRATEGIC_THRESHOLD", DEFAULT_CONFIG.strategic_value_threshold
        ),
        high_risk_threshold=_read_float(
            "FAMILY_HIGH_RISK_THRESHOLD", DEFAULT_CONFIG.high_risk_threshold
        ),
        medium_risk_threshold=_read_float(
            "FAMILY_MEDIUM_RISK_THRESHOLD", DEFAULT_CONFIG.medium_risk_threshold
        ),
        record_high_risk_threshold=_read_float(
            "RECORD_HIGH_RISK_THRESHOLD", DEFAULT_CONFIG.record_high_risk_threshold
        ),
        record_medium_risk_threshold=_read_float(
            "RECORD_MEDIUM_RISK_THRESHOLD", DEFAULT_CONFIG.record_medium_risk_threshold
        ),
        critical_compliance_flag_count=_read_int(
            "FAMILY_CRITICAL_FLAG_COUNT", DEFAULT_CONFIG.critical_compliance_flag_count
        ),
        government_markers=government_markers,
        default_industry=os.getenv("DEFAULT_INDUSTRY") or DEFAULT_CONFIG.default_industry,
        default_currency=os.getenv("DEFAULT_CURRENCY") or DEFAULT_CONFIG.default_currency,
        graceful_degradation=_read_bool(
            "GRACEFUL_DEGRADATION", DEFAULT_CONFIG.graceful_degradation
        ),
    )

    if config.medium_risk_threshold > config.high_risk_threshold:
        raise ConfigurationError(
            "FAMILY_MEDIUM_RISK_THRESHOLD must not exceed FAMILY_HIGH_RISK_THRESHOLD"
        )
    if config.record_medium_risk_threshold > config.record_high_risk_threshold:
        raise ConfigurationError(
            "RECORD_MEDIUM_RISK_THRESHOLD must not exceed RECORD_HIGH_RISK_THRESHOLD"
        )

    return config
