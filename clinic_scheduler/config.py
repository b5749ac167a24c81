"""
Centralized configuration with environment variable overrides.

Scheduling rules, surcharge rates, notification and reminder settings
are configurable here. Nothing is hardcoded in the scheduling core.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from clinic_scheduler.logging_context import build_log_handler

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


def _csv(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class SchedulingConfig:
    """Calendar, slot and pricing rules."""

    default_slot_minutes: int = _safe_int("DEFAULT_SLOT_MINUTES", "30")
    default_max_concurrent: int = _safe_int("DEFAULT_MAX_CONCURRENT", "1")
    min_slot_minutes: int = _safe_int("MIN_SLOT_MINUTES", "15")
    max_slot_minutes: int = _safe_int("MAX_SLOT_MINUTES", "240")
    max_concurrent_limit: int = _safe_int("MAX_CONCURRENT_LIMIT", "10")
    emergency_surcharge: float = _safe_float("EMERGENCY_SURCHARGE", "0.50")


@dataclass(frozen=True)
class NotificationConfig:
    """Dispatcher worker pool and delivery settings."""

    max_workers: int = _safe_int("NOTIFY_MAX_WORKERS", "4")
    max_retries: int = _safe_int("NOTIFY_MAX_RETRIES", "2")
    channels: tuple[str, ...] = _csv("NOTIFY_CHANNELS", "email,sms")


@dataclass(frozen=True)
class ReminderConfig:
    """Periodic reminder scan settings."""

    first_lead_hours: int = _safe_int("REMINDER_FIRST_LEAD_HOURS", "24")
    scan_interval_seconds: int = _safe_int("REMINDER_SCAN_INTERVAL", "300")


@dataclass(frozen=True)
class StorageConfig:
    """Appointment store backend."""

    backend: str = os.getenv("STORE_BACKEND", "memory")
    sqlite_path: str = os.getenv("SQLITE_PATH", "clinic_scheduler.db")


@dataclass(frozen=True)
class ApiConfig:
    """HTTP server bind settings."""

    host: str = os.getenv("API_HOST", "127.0.0.1")
    port: int = _safe_int("API_PORT", "8000")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    reminders: ReminderConfig = field(default_factory=ReminderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "clinic-scheduler")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    sched = config.scheduling
    if sched.min_slot_minutes < 1:
        raise ValueError(f"MIN_SLOT_MINUTES must be >= 1, got {sched.min_slot_minutes}")
    if sched.max_slot_minutes < sched.min_slot_minutes:
        raise ValueError(
            "MAX_SLOT_MINUTES must be >= MIN_SLOT_MINUTES, "
            f"got {sched.max_slot_minutes} < {sched.min_slot_minutes}"
        )
    if not sched.min_slot_minutes <= sched.default_slot_minutes <= sched.max_slot_minutes:
        raise ValueError(
            f"DEFAULT_SLOT_MINUTES must be between {sched.min_slot_minutes} and "
            f"{sched.max_slot_minutes}, got {sched.default_slot_minutes}"
        )
    if sched.max_concurrent_limit < 1:
        raise ValueError(
            f"MAX_CONCURRENT_LIMIT must be >= 1, got {sched.max_concurrent_limit}"
        )
    if not 1 <= sched.default_max_concurrent <= sched.max_concurrent_limit:
        raise ValueError(
            f"DEFAULT_MAX_CONCURRENT must be between 1 and {sched.max_concurrent_limit}, "
            f"got {sched.default_max_concurrent}"
        )
    if not 0.0 <= sched.emergency_surcharge <= 5.0:
        raise ValueError(
            f"EMERGENCY_SURCHARGE must be between 0.0 and 5.0, got {sched.emergency_surcharge}"
        )

    if config.notifications.max_workers < 1:
        raise ValueError(
            f"NOTIFY_MAX_WORKERS must be >= 1, got {config.notifications.max_workers}"
        )
    if config.notifications.max_retries < 0:
        raise ValueError(
            f"NOTIFY_MAX_RETRIES must be >= 0, got {config.notifications.max_retries}"
        )

    if config.reminders.first_lead_hours < 1:
        raise ValueError(
            f"REMINDER_FIRST_LEAD_HOURS must be >= 1, got {config.reminders.first_lead_hours}"
        )
    if config.reminders.scan_interval_seconds < 1:
        raise ValueError(
            "REMINDER_SCAN_INTERVAL must be >= 1, "
            f"got {config.reminders.scan_interval_seconds}"
        )

    if config.storage.backend not in ("memory", "sqlite"):
        raise ValueError(
            f"STORE_BACKEND must be 'memory' or 'sqlite', got {config.storage.backend!r}"
        )
    if not 1 <= config.api.port <= 65535:
        raise ValueError(f"API_PORT must be between 1 and 65535, got {config.api.port}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    # No-op when the root logger already has handlers (e.g. under pytest).
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[build_log_handler(datefmt="%Y-%m-%d %H:%M:%S")],
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
