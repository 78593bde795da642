"""Boundary with the external recommendation engine.

``build_coach_context`` flattens the computed metrics into the plain dict the
engine consumes. ``decode_coach_response`` decodes the engine's JSON answer
into typed models; anything that does not decode cleanly raises
``MalformedResponseError`` and callers fall back to a default session.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Iterable, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from coach_engine.errors import MalformedResponseError
from coach_engine.logging_config import get_logger
from coach_engine.services.metrics import calculate_ef, categorize_ef
from coach_engine.services.scheduler import WeeklySession, determine_next_session
from coach_engine.services.training_load import (
    ActivityLoad,
    calculate_training_load_metrics,
    get_week_boundaries,
    get_week_in_block,
)
from coach_engine.services.vo2max import (
    METHOD_FTP,
    METHOD_PEAK_5MIN,
    categorize_vo2max,
    estimate_vo2max_from_ftp,
    estimate_vo2max_from_peak_power,
)

logger = get_logger(__name__)

RecommendedSessionType = Literal["vo2max", "threshold", "fun", "recovery", "off"]


class _ResponseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Range(_ResponseModel):
    min: float = Field(strict=True)
    max: float = Field(strict=True)

    @model_validator(mode="after")
    def ordered(self):
        if self.max < self.min:
            raise ValueError("max must be >= min")
        return self


class IntervalPlan(_ResponseModel):
    protocol: str = Field(strict=True)
    count: int = Field(strict=True, ge=1)
    work_seconds: int = Field(alias="workSeconds", strict=True, ge=1)
    rest_seconds: int = Field(alias="restSeconds", strict=True, ge=0)
    target_power_percent: Range = Field(alias="targetPowerPercent")


class SessionRecommendation(_ResponseModel):
    type: RecommendedSessionType
    duration_minutes: float = Field(alias="durationMinutes", strict=True, ge=0)
    intervals: Optional[IntervalPlan] = None
    target_tss: Range = Field(alias="targetTSS")
    target_zones: str = Field(alias="targetZones", strict=True)


class CoachWarning(_ResponseModel):
    type: str = Field(strict=True)
    message: str = Field(strict=True)


class CoachRecommendation(_ResponseModel):
    session: SessionRecommendation
    reasoning: str = Field(strict=True)
    coaching_tips: Optional[list[str]] = Field(default=None, alias="coachingTips")
    warnings: Optional[list[CoachWarning]] = None
    suggest_ftp_test: bool = Field(default=False, alias="suggestFTPTest", strict=True)

    @property
    def is_fallback(self) -> bool:
        return any(w.type == "fallback" for w in self.warnings or [])


def decode_coach_response(raw: str | bytes | dict[str, Any]) -> CoachRecommendation:
    """Decode the engine's JSON reply, rejecting anything partial or mistyped."""
    try:
        if isinstance(raw, (str, bytes)):
            return CoachRecommendation.model_validate_json(raw)
        if not isinstance(raw, dict):
            raise MalformedResponseError(f"Expected a JSON object, got {type(raw).__name__}")
        return CoachRecommendation.model_validate(raw)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "response" for err in exc.errors())
        raise MalformedResponseError(f"Malformed coach response ({fields})") from exc


# ── Fallback ──

_FALLBACK_SESSIONS: dict[str, dict[str, Any]] = {
    "vo2max": {
        "type": "vo2max",
        "durationMinutes": 45,
        "intervals": {
            "protocol": "30/30 Billat",
            "count": 10,
            "workSeconds": 30,
            "restSeconds": 30,
            "targetPowerPercent": {"min": 110, "max": 120},
        },
        "targetTSS": {"min": 40, "max": 60},
        "targetZones": "Z5-Z6 for work intervals, Z1-Z2 for recovery",
    },
    "threshold": {
        "type": "threshold",
        "durationMinutes": 50,
        "intervals": {
            "protocol": "Sweet Spot",
            "count": 3,
            "workSeconds": 600,
            "restSeconds": 300,
            "targetPowerPercent": {"min": 88, "max": 94},
        },
        "targetTSS": {"min": 50, "max": 70},
        "targetZones": "Z4 for work intervals, Z2 for recovery",
    },
    "fun": {
        "type": "fun",
        "durationMinutes": 60,
        "targetTSS": {"min": 30, "max": 80},
        "targetZones": "Whatever feels good - Z2-Z4",
    },
}

FALLBACK_REASONING = "Unable to generate personalized recommendation. Using default session for today."
FALLBACK_TIPS = [
    "Listen to your body and adjust intensity as needed",
    "Stay hydrated throughout the session",
]
FALLBACK_WARNING = "This is a default recommendation. Try again later for personalized coaching."


def fallback_response(session_type: str | None) -> CoachRecommendation:
    """Default session for the scheduled type; unknown types get the fun ride."""
    session = _FALLBACK_SESSIONS.get(session_type or "", _FALLBACK_SESSIONS["fun"])
    return CoachRecommendation.model_validate(
        {
            "session": session,
            "reasoning": FALLBACK_REASONING,
            "coachingTips": list(FALLBACK_TIPS),
            "warnings": [{"type": "fallback", "message": FALLBACK_WARNING}],
        }
    )


def recommendation_or_fallback(
    raw: str | bytes | dict[str, Any] | None,
    session_type: str | None,
) -> CoachRecommendation:
    if raw is None:
        logger.warning("No coach response received, using fallback for %s", session_type)
        return fallback_response(session_type)
    try:
        return decode_coach_response(raw)
    except MalformedResponseError as exc:
        logger.warning("Coach response rejected, using fallback: %s", exc)
        return fallback_response(session_type)


# ── Context ──

def _session_dict(session: WeeklySession | None) -> dict[str, Any] | None:
    if session is None:
        return None
    return {
        "order": session.order,
        "sessionType": session.session_type,
        "pelotonClassTypes": list(session.peloton_class_types),
        "suggestedDurationMinutes": session.suggested_duration_minutes,
        "description": session.description,
    }


def build_coach_context(
    activities: Iterable[ActivityLoad],
    weekly_sessions: Sequence[WeeklySession],
    completed_activities: Iterable,
    block_start: dt.date,
    ftp: float,
    weight_kg: float | None = None,
    recent_np: float | None = None,
    recent_avg_hr: float | None = None,
    peak_5min_power: float | None = None,
    today: dt.date | None = None,
    lookback_days: int | None = None,
) -> dict[str, Any]:
    """Computed metrics as plain data for the recommendation engine."""
    today = today or dt.date.today()
    load = calculate_training_load_metrics(activities, lookback_days=lookback_days, today=today)
    next_session = determine_next_session(weekly_sessions, completed_activities)
    week = get_week_boundaries(today)

    ef = None
    if recent_np is not None and recent_avg_hr is not None:
        ef = calculate_ef(recent_np, recent_avg_hr)

    vo2max = None
    method = None
    if weight_kg:
        if peak_5min_power:
            vo2max = estimate_vo2max_from_peak_power(peak_5min_power, weight_kg, METHOD_PEAK_5MIN)
            method = METHOD_PEAK_5MIN
        if vo2max is None:
            vo2max = estimate_vo2max_from_ftp(ftp, weight_kg)
            method = METHOD_FTP if vo2max is not None else None

    return {
        "trainingLoad": {"atl": load.atl, "ctl": load.ctl, "tsb": load.tsb},
        "schedule": {
            "weekInBlock": get_week_in_block(block_start, today),
            "weekStart": week.start,
            "weekEnd": week.end,
            "nextSession": _session_dict(next_session),
            "sessionType": next_session.session_type if next_session else None,
            "weekComplete": next_session is None and bool(weekly_sessions),
        },
        "athlete": {"ftp": ftp, "weightKg": weight_kg},
        "efficiency": {"ef": ef, "category": categorize_ef(ef) if ef is not None else None},
        "vo2max": {
            "value": vo2max,
            "category": categorize_vo2max(vo2max) if vo2max is not None else None,
            "method": method,
        },
    }
