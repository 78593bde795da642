"""Tests for the recommendation-engine boundary."""

from __future__ import annotations

import datetime as dt
import json

import pytest

from coach_engine.errors import MalformedResponseError
from coach_engine.services.coach_context import (
    FALLBACK_REASONING,
    FALLBACK_WARNING,
    build_coach_context,
    decode_coach_response,
    fallback_response,
    recommendation_or_fallback,
)
from coach_engine.services.scheduler import WeeklySession
from coach_engine.services.training_load import ActivityLoad

VALID = {
    "session": {
        "type": "threshold",
        "durationMinutes": 60,
        "intervals": {
            "protocol": "2x20",
            "count": 2,
            "workSeconds": 1200,
            "restSeconds": 300,
            "targetPowerPercent": {"min": 95, "max": 100},
        },
        "targetTSS": {"min": 60, "max": 75},
        "targetZones": "Z4",
    },
    "reasoning": "Fresh legs, CTL trending up.",
    "coachingTips": ["Keep cadence above 85"],
    "suggestFTPTest": True,
}


# ── Decoding ──────────────────────────────────────────────────────────────

class TestDecode:
    def test_valid_json(self):
        rec = decode_coach_response(json.dumps(VALID))
        assert rec.session.type == "threshold"
        assert rec.session.intervals.work_seconds == 1200
        assert rec.session.target_tss.max == 75
        assert rec.suggest_ftp_test is True
        assert rec.is_fallback is False

    def test_valid_dict(self):
        rec = decode_coach_response(VALID)
        assert rec.coaching_tips == ["Keep cadence above 85"]

    def test_optional_fields(self):
        payload = {k: v for k, v in VALID.items() if k not in ("coachingTips", "suggestFTPTest")}
        payload["session"] = {k: v for k, v in VALID["session"].items() if k != "intervals"}
        rec = decode_coach_response(payload)
        assert rec.session.intervals is None
        assert rec.suggest_ftp_test is False

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[]",
            json.dumps({"reasoning": "missing session"}),
            json.dumps({**VALID, "session": {**VALID["session"], "type": "sprint"}}),
            json.dumps({**VALID, "session": {**VALID["session"], "durationMinutes": "60"}}),
            json.dumps({**VALID, "session": {**VALID["session"], "targetTSS": {"min": 80, "max": 60}}}),
        ],
    )
    def test_malformed(self, raw):
        with pytest.raises(MalformedResponseError):
            decode_coach_response(raw)

    def test_non_object(self):
        with pytest.raises(MalformedResponseError):
            decode_coach_response(42)


# ── Fallback ──────────────────────────────────────────────────────────────

class TestFallback:
    def test_scheduled_type(self):
        rec = fallback_response("vo2max")
        assert rec.session.type == "vo2max"
        assert rec.session.intervals.count == 10
        assert rec.reasoning == FALLBACK_REASONING
        assert rec.warnings[0].message == FALLBACK_WARNING
        assert rec.is_fallback

    def test_unknown_type_is_fun(self):
        assert fallback_response("recovery").session.type == "fun"
        assert fallback_response(None).session.type == "fun"

    def test_recommendation_or_fallback(self):
        assert recommendation_or_fallback(VALID, "vo2max").session.type == "threshold"
        assert recommendation_or_fallback("{broken", "threshold").is_fallback
        assert recommendation_or_fallback(None, "threshold").session.type == "threshold"


# ── Context ───────────────────────────────────────────────────────────────

def test_build_context():
    today = dt.date(2025, 2, 5)
    week = [
        WeeklySession(order=1, session_type="vo2max"),
        WeeklySession(order=2, session_type="threshold"),
        WeeklySession(order=3, session_type="fun"),
    ]
    ctx = build_coach_context(
        activities=[ActivityLoad(timestamp=today - dt.timedelta(days=1), tss=80)],
        weekly_sessions=week,
        completed_activities=[{"type": "vo2max"}],
        block_start=dt.date(2025, 1, 27),
        ftp=250,
        weight_kg=75,
        recent_np=200,
        recent_avg_hr=140,
        today=today,
        lookback_days=42,
    )

    assert ctx["trainingLoad"]["atl"] > ctx["trainingLoad"]["ctl"] > 0
    assert ctx["schedule"]["weekInBlock"] == 2
    assert (ctx["schedule"]["weekStart"], ctx["schedule"]["weekEnd"]) == ("2025-02-03", "2025-02-09")
    assert ctx["schedule"]["sessionType"] == "threshold"
    assert ctx["schedule"]["weekComplete"] is False
    assert ctx["efficiency"] == {"ef": 1.43, "category": "trained"}
    assert ctx["vo2max"] == {"value": 52.0, "category": "good", "method": "ftp_derived"}


def test_build_context_prefers_peak_power():
    ctx = build_coach_context(
        activities=[],
        weekly_sessions=[WeeklySession(order=1, session_type="fun")],
        completed_activities=[{"type": "fun"}],
        block_start=dt.date(2025, 1, 27),
        ftp=250,
        weight_kg=75,
        peak_5min_power=300,
        today=dt.date(2025, 2, 5),
        lookback_days=42,
    )
    assert ctx["vo2max"]["method"] == "peak_5min"
    assert ctx["vo2max"]["value"] == 50.2
    assert ctx["schedule"]["weekComplete"] is True
    assert ctx["schedule"]["nextSession"] is None
    assert ctx["efficiency"]["ef"] is None
