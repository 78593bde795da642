"""Application configuration with environment-specific profiles.

Supports dev, staging, and production environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    log_level: str = "INFO"

    # Training load
    default_lookback_days: int = 60

    # Plan sync falls back to this when an exercise cannot be looked up
    default_weight_increment: float = 5.0

    # Strava activity source
    strava_client_id: str = ""
    strava_client_secret: str = ""
    strava_timeout_seconds: float = 30.0

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "strava_timeout_seconds": 30.0,
    },
    "staging": {
        "log_level": "INFO",
        "strava_timeout_seconds": 30.0,
    },
    "production": {
        "log_level": "WARNING",
        "strava_timeout_seconds": 15.0,
    },
}


def get_database_url() -> str:
    """Resolve the database URL from DATABASE_URL, defaulting to a local SQLite file."""
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "sqlite:///coach_engine.db"


def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        default_lookback_days=int(os.getenv("TRAINING_LOAD_LOOKBACK_DAYS", "60")),
        default_weight_increment=float(os.getenv("DEFAULT_WEIGHT_INCREMENT", "5.0")),
        strava_client_id=os.getenv("STRAVA_CLIENT_ID", ""),
        strava_client_secret=os.getenv("STRAVA_CLIENT_SECRET", ""),
        strava_timeout_seconds=float(
            os.getenv("STRAVA_TIMEOUT_SECONDS", str(profile.get("strava_timeout_seconds", 30.0)))
        ),
    )
