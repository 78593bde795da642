"""Strava API v3 activity source and single-activity processing.

Metrics here use the lenient path: a missing or zero FTP yields zero IF and
TSS instead of an error, and TSS is rounded to a whole number.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Iterable

import httpx

from coach_engine.config import get_settings
from coach_engine.errors import ActivitySourceError
from coach_engine.logging_config import get_logger, log_context
from coach_engine.services.activities.base import (
    CYCLING_ACTIVITY_TYPES,
    ActivitySource,
    ActivityStreams,
    ActivityTokens,
    CyclingActivity,
)
from coach_engine.services.metrics import (
    calculate_ef,
    calculate_hr_completeness,
    calculate_peak_power,
    classify_workout_type,
    round_half_up,
)
from coach_engine.services.vo2max import METHOD_PEAK_5MIN, estimate_vo2max_from_peak_power

logger = get_logger(__name__)

STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"
STRAVA_API_BASE = "https://www.strava.com/api/v3"

MAX_PAGE_SIZE = 200
TOKEN_EXPIRY_BUFFER_SEC = 5 * 60

PEAK_5MIN_SEC = 300
PEAK_20MIN_SEC = 1200


# ── Lenient metrics ──

def lenient_intensity_factor(normalized_power: float, ftp: float) -> float:
    if ftp <= 0 or normalized_power <= 0:
        return 0.0
    return round_half_up(normalized_power / ftp, 2)


def lenient_tss(duration_sec: float, normalized_power: float, ftp: float) -> int:
    if ftp <= 0 or duration_sec <= 0 or normalized_power <= 0:
        return 0
    intensity = normalized_power / ftp
    tss = (duration_sec * normalized_power * intensity) / (ftp * 3600) * 100
    return int(round_half_up(tss))


def _parse_start(value: str | None) -> datetime:
    try:
        return datetime.fromisoformat((value or "").replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(tz=timezone.utc)


def process_strava_activity(raw: dict[str, Any], ftp: float) -> CyclingActivity:
    """Convert a raw Strava activity into a CyclingActivity with metrics.

    Normalized power is Strava's weighted average watts, falling back to
    average watts. Duration is moving time.
    """
    normalized_power = float(raw.get("weighted_average_watts") or raw.get("average_watts") or 0)
    avg_power = float(raw.get("average_watts") or 0)
    moving_time = float(raw.get("moving_time") or 0)
    avg_hr = float(raw.get("average_heartrate") or 0)

    intensity = lenient_intensity_factor(normalized_power, ftp)
    return CyclingActivity(
        remote_id=str(raw.get("id", "")),
        source="strava",
        start_date=_parse_start(raw.get("start_date")),
        duration_minutes=int(round_half_up(moving_time / 60)),
        avg_power=avg_power,
        normalized_power=normalized_power,
        max_power=float(raw.get("max_watts") or 0),
        avg_heart_rate=avg_hr,
        max_heart_rate=float(raw.get("max_heartrate") or 0),
        tss=lenient_tss(moving_time, normalized_power, ftp),
        intensity_factor=intensity,
        type=classify_workout_type(intensity),
        ef=calculate_ef(normalized_power, avg_hr),
        name=raw.get("name", ""),
        raw_payload=raw,
    )


def filter_cycling_activities(activities: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return [a for a in activities if a.get("type") in CYCLING_ACTIVITY_TYPES]


def tokens_expired(tokens: ActivityTokens, now: float | None = None) -> bool:
    """True when the access token expires within the next five minutes."""
    now = time.time() if now is None else now
    return int(now) >= tokens.expires_at - TOKEN_EXPIRY_BUFFER_SEC


def enrich_with_streams(
    activity: CyclingActivity,
    streams: ActivityStreams,
    weight_kg: float | None = None,
) -> CyclingActivity:
    """Fill peak power, HR completeness and a VO2max estimate from streams."""
    if streams.watts and streams.time:
        peak5 = calculate_peak_power(streams.watts, streams.time, PEAK_5MIN_SEC)
        if peak5 > 0:
            activity.peak_5min_power = peak5
        peak20 = calculate_peak_power(streams.watts, streams.time, PEAK_20MIN_SEC)
        if peak20 > 0:
            activity.peak_20min_power = peak20

    if streams.heartrate:
        activity.hr_completeness = calculate_hr_completeness(streams.heartrate)

    if activity.peak_5min_power and weight_kg and weight_kg > 0:
        activity.vo2max_estimate = estimate_vo2max_from_peak_power(
            activity.peak_5min_power, weight_kg, METHOD_PEAK_5MIN
        )
        logger.info(
            "Estimated VO2max %s from peak 5-min power %sW",
            activity.vo2max_estimate, activity.peak_5min_power,
            extra=log_context(activity_id=activity.remote_id),
        )
    return activity


# ── HTTP source ──

class StravaActivitySource(ActivitySource):
    """Strava REST API v3 client. Non-2xx responses raise ActivitySourceError."""

    SOURCE_NAME = "strava"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        client: httpx.Client | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.client_id = client_id if client_id is not None else settings.strava_client_id
        self.client_secret = client_secret if client_secret is not None else settings.strava_client_secret
        self.timeout = timeout if timeout is not None else settings.strava_timeout_seconds
        self.client = client or httpx.Client(timeout=self.timeout)

    def _get(self, path: str, access_token: str, params: dict[str, Any] | None = None) -> Any:
        resp = self.client.get(
            f"{STRAVA_API_BASE}{path}",
            params=params,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not resp.is_success:
            raise ActivitySourceError(f"Strava API error: {resp.status_code}", resp.status_code)
        return resp.json()

    def fetch_activity(self, access_token: str, activity_id: int) -> dict[str, Any]:
        return self._get(f"/activities/{activity_id}", access_token)

    def fetch_activities(self, access_token: str, page: int = 1, per_page: int = 30) -> list[dict[str, Any]]:
        params = {"page": page, "per_page": min(per_page, MAX_PAGE_SIZE)}
        return self._get("/athlete/activities", access_token, params)

    def fetch_streams(
        self, access_token: str, activity_id: int, keys: tuple[str, ...] = ("watts", "heartrate", "time", "cadence")
    ) -> ActivityStreams:
        data = self._get(
            f"/activities/{activity_id}/streams",
            access_token,
            {"keys": ",".join(keys), "key_by_type": "true"},
        )

        def series(name: str) -> list[float] | None:
            stream = data.get(name) if isinstance(data, dict) else None
            if not stream:
                return None
            return list(stream.get("data") or [])

        return ActivityStreams(
            watts=series("watts"),
            heartrate=series("heartrate"),
            time=series("time"),
            cadence=series("cadence"),
        )

    def refresh_tokens(self, refresh_token: str) -> ActivityTokens:
        resp = self.client.post(
            STRAVA_TOKEN_URL,
            json={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if not resp.is_success:
            raise ActivitySourceError(f"Token refresh failed: {resp.status_code}", resp.status_code)
        data = resp.json()
        return ActivityTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", refresh_token),
            expires_at=int(data["expires_at"]),
            athlete_id=int((data.get("athlete") or {}).get("id", 0)),
        )

    def fetch_cycling_activities(self, access_token: str, ftp: float, page: int = 1, per_page: int = 30) -> list[CyclingActivity]:
        """One page of rides, converted. Unparseable records are logged and skipped."""
        results = []
        for raw in filter_cycling_activities(self.fetch_activities(access_token, page, per_page)):
            try:
                results.append(process_strava_activity(raw, ftp))
            except (TypeError, ValueError):
                logger.warning("Failed to parse Strava activity: %s", raw.get("id", "unknown"))
        return results
