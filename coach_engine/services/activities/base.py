"""Activity source interface for cycling data.

Each provider (Strava today) implements ``ActivitySource`` so ingestion can
treat them uniformly. Raw provider records are converted to
``CyclingActivity`` before any training-load math runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

CYCLING_ACTIVITY_TYPES = ("Ride", "VirtualRide")


@dataclass
class CyclingActivity:
    """Provider-agnostic cycling activity with derived metrics."""

    remote_id: str
    source: str  # "strava"
    start_date: datetime
    duration_minutes: int
    avg_power: float
    normalized_power: float
    max_power: float
    avg_heart_rate: float
    max_heart_rate: float
    tss: int
    intensity_factor: float
    type: str  # vo2max | threshold | fun | recovery | unknown
    ef: float | None = None
    peak_5min_power: int | None = None
    peak_20min_power: int | None = None
    hr_completeness: int | None = None
    vo2max_estimate: float | None = None
    name: str = ""
    raw_payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActivityTokens:
    access_token: str
    refresh_token: str
    expires_at: int  # unix seconds
    athlete_id: int = 0


@dataclass(frozen=True)
class ActivityStreams:
    """Per-second samples keyed by stream type; missing streams are None."""

    watts: list[float] | None = None
    heartrate: list[float] | None = None
    time: list[float] | None = None
    cadence: list[float] | None = None

    @property
    def sample_count(self) -> int:
        for series in (self.time, self.watts, self.heartrate):
            if series:
                return len(series)
        return 0


class ActivitySource(ABC):
    """Interface that each cycling data provider must implement."""

    SOURCE_NAME: str = ""

    @abstractmethod
    def fetch_activity(self, access_token: str, activity_id: int) -> dict[str, Any]:
        """Fetch one raw activity record."""

    @abstractmethod
    def fetch_activities(self, access_token: str, page: int = 1, per_page: int = 30) -> list[dict[str, Any]]:
        """Fetch a page of raw activity records, newest first."""

    @abstractmethod
    def fetch_streams(
        self, access_token: str, activity_id: int, keys: tuple[str, ...] = ("watts", "heartrate", "time", "cadence")
    ) -> ActivityStreams:
        """Fetch sample streams for an activity."""

    @abstractmethod
    def refresh_tokens(self, refresh_token: str) -> ActivityTokens:
        """Exchange a refresh token for a fresh token set."""
