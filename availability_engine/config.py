"""
Centralized configuration with environment variable overrides.

Working window, closed days, default booking policy and the distance
service settings live here so the scheduling code never hardcodes them.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_int_set(env_var: str, default: str) -> frozenset[int]:
    """Parse a comma separated list of integers, e.g. ``"0,6"``."""
    raw = os.getenv(env_var, default)
    try:
        return frozenset(int(part) for part in raw.split(",") if part.strip())
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer list for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class ScheduleConfig:
    """Working window and evaluation settings for slot generation."""

    default_time_zone: str = os.getenv("DEFAULT_TIME_ZONE", "Australia/Sydney")
    opening_minute: int = _safe_int("OPENING_MINUTE", "420")
    closing_minute: int = _safe_int("CLOSING_MINUTE", "1140")
    # 0 = Sunday ... 6 = Saturday
    closed_weekdays: frozenset[int] = _safe_int_set("CLOSED_WEEKDAYS", "0")
    staff_workers: int = _safe_int("STAFF_WORKERS", "4")


@dataclass(frozen=True)
class PolicyDefaults:
    """Booking policy used for businesses that have not saved their own."""

    min_lead_time_hours: float = _safe_float("DEFAULT_MIN_LEAD_TIME_HOURS", "24")
    buffer_minutes: int = _safe_int("DEFAULT_BUFFER_MINUTES", "30")
    max_drive_distance_km: float = _safe_float("DEFAULT_MAX_DRIVE_DISTANCE_KM", "50")
    time_slot_interval_minutes: int = _safe_int("DEFAULT_TIME_SLOT_INTERVAL", "30")


@dataclass(frozen=True)
class DistanceConfig:
    """Distance Matrix service settings."""

    api_url: str = os.getenv(
        "DISTANCE_API_URL", "https://maps.googleapis.com/maps/api/distancematrix/json"
    )
    api_key: str = os.getenv("DISTANCE_API_KEY", "")
    timeout_seconds: float = _safe_float("DISTANCE_TIMEOUT_SECONDS", "5.0")
    batch_size: int = _safe_int("DISTANCE_BATCH_SIZE", "5")


@dataclass(frozen=True)
class EngineConfig:
    """Root configuration aggregating all sub-configs."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    policy: PolicyDefaults = field(default_factory=PolicyDefaults)
    distance: DistanceConfig = field(default_factory=DistanceConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: EngineConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    schedule = config.schedule
    if not 0 <= schedule.opening_minute < schedule.closing_minute <= 24 * 60:
        raise ValueError(
            "OPENING_MINUTE and CLOSING_MINUTE must satisfy "
            f"0 <= open < close <= 1440, got {schedule.opening_minute}-{schedule.closing_minute}"
        )
    for day in schedule.closed_weekdays:
        if not 0 <= day <= 6:
            raise ValueError(f"CLOSED_WEEKDAYS entries must be 0-6, got {day}")
    if schedule.staff_workers < 1:
        raise ValueError(f"STAFF_WORKERS must be >= 1, got {schedule.staff_workers}")

    policy = config.policy
    for name, value in [
        ("DEFAULT_MIN_LEAD_TIME_HOURS", policy.min_lead_time_hours),
        ("DEFAULT_BUFFER_MINUTES", policy.buffer_minutes),
        ("DEFAULT_MAX_DRIVE_DISTANCE_KM", policy.max_drive_distance_km),
    ]:
        if value < 0:
            raise ValueError(f"{name} must be >= 0, got {value}")
    if policy.time_slot_interval_minutes < 1:
        raise ValueError(
            f"DEFAULT_TIME_SLOT_INTERVAL must be >= 1, got {policy.time_slot_interval_minutes}"
        )

    if config.distance.timeout_seconds <= 0:
        raise ValueError(
            f"DISTANCE_TIMEOUT_SECONDS must be > 0, got {config.distance.timeout_seconds}"
        )
    if config.distance.batch_size < 1:
        raise ValueError(f"DISTANCE_BATCH_SIZE must be >= 1, got {config.distance.batch_size}")


def load_config() -> EngineConfig:
    """Load and validate engine configuration."""
    config = EngineConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded (zone=%s, window=%s-%s)",
        config.schedule.default_time_zone,
        config.schedule.opening_minute,
        config.schedule.closing_minute,
    )
    return config


# Singleton instance
settings = load_config()
