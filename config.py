# config.py – Centralized configuration with validation
from __future__ import annotations
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _getenv_bool(key: str, default: bool = False) -> bool:
    """Helper to parse boolean environment variables consistently."""
    value = os.getenv(key, str(default)).lower()
    return value in ("1", "true", "yes", "y", "on")


def _getenv_int(key: str, default: int) -> int:
    """Helper to parse integer environment variables with validation."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: {os.getenv(key)}")


@dataclass(frozen=True)
class RealtimeConfig:
    """Polling bridge and push reconnect configuration."""
    poll_interval_ms: int = _getenv_int("REALTIME_POLL_INTERVAL_MS", 30000)
    reconnect_base_ms: int = _getenv_int("REALTIME_RECONNECT_BASE_MS", 1000)
    reconnect_max_ms: int = _getenv_int("REALTIME_RECONNECT_MAX_MS", 30000)

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    def __post_init__(self):
        if self.poll_interval_ms < 1:
            raise ValueError("REALTIME_POLL_INTERVAL_MS must be >= 1")
        if self.reconnect_base_ms < 1:
            raise ValueError("REALTIME_RECONNECT_BASE_MS must be >= 1")
        if self.reconnect_base_ms > self.reconnect_max_ms:
            raise ValueError("REALTIME_RECONNECT_BASE_MS must be <= REALTIME_RECONNECT_MAX_MS")


@dataclass(frozen=True)
class SecurityConfig:
    """Security and authentication configuration."""
    password_min_length: int = _getenv_int("PASSWORD_MIN_LENGTH", 8)
    password_min_score: int = _getenv_int("PASSWORD_MIN_SCORE", 3)

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    structured_logging: bool = _getenv_bool("STRUCTURED_LOGGING")

    def __post_init__(self):
        if self.password_min_length < 1:
            raise ValueError("PASSWORD_MIN_LENGTH must be >= 1")
        if not (0 <= self.password_min_score <= 4):
            raise ValueError("PASSWORD_MIN_SCORE must be between 0 and 4")


@dataclass(frozen=True)
class ApplicationConfig:
    """Main application configuration."""
    env: str = os.getenv("ENV", "development")
    port: int = _getenv_int("PORT", 8080)
    service_name: str = os.getenv("SERVICE_NAME", "sentineliq-api")
    service_version: str = os.getenv("SERVICE_VERSION", "1.0.0")


@dataclass(frozen=True)
class TrialConfig:
    """Free trial configuration."""
    duration_days: int = _getenv_int("TRIAL_DURATION_DAYS", 14)
    plan: str = os.getenv("TRIAL_PLAN", "pro").lower()

    def __post_init__(self):
        if self.duration_days < 1:
            raise ValueError("TRIAL_DURATION_DAYS must be >= 1")


@dataclass(frozen=True)
class Config:
    """Master configuration object."""
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    app: ApplicationConfig = field(default_factory=ApplicationConfig)
    trial: TrialConfig = field(default_factory=TrialConfig)

    def validate(self):
        """Validate the complete configuration."""
        self.realtime.__post_init__()
        self.security.__post_init__()
        self.trial.__post_init__()


# Global config instance
CONFIG = Config()
