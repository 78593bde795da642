"""Tests for Strava activity processing and the HTTP source."""

from __future__ import annotations

import json

import httpx
import pytest

from coach_engine.errors import ActivitySourceError
from coach_engine.services.activities.base import ActivityStreams, ActivityTokens
from coach_engine.services.activities.strava import (
    MAX_PAGE_SIZE,
    StravaActivitySource,
    enrich_with_streams,
    filter_cycling_activities,
    lenient_intensity_factor,
    lenient_tss,
    process_strava_activity,
    tokens_expired,
)

RIDE = {
    "id": 123,
    "name": "Lunch Ride",
    "type": "Ride",
    "start_date": "2025-02-03T12:00:00Z",
    "moving_time": 3600,
    "average_watts": 180,
    "weighted_average_watts": 200,
    "max_watts": 650,
    "average_heartrate": 140,
    "max_heartrate": 172,
}


# ── Lenient metrics ───────────────────────────────────────────────────────

def test_lenient_metrics_without_ftp():
    assert lenient_intensity_factor(200, 0) == 0.0
    assert lenient_tss(3600, 200, 0) == 0


def test_lenient_tss_is_whole_number():
    assert lenient_tss(3600, 200, 250) == 64
    assert isinstance(lenient_tss(3000, 213, 250), int)


# ── Processing ────────────────────────────────────────────────────────────

class TestProcessActivity:
    def test_metrics(self):
        activity = process_strava_activity(RIDE, ftp=250)
        assert activity.remote_id == "123"
        assert activity.source == "strava"
        assert activity.duration_minutes == 60
        assert activity.normalized_power == 200
        assert activity.intensity_factor == 0.8
        assert activity.tss == 64
        assert activity.type == "fun"
        assert activity.ef == 1.43
        assert activity.start_date.year == 2025

    def test_falls_back_to_average_watts(self):
        raw = {k: v for k, v in RIDE.items() if k != "weighted_average_watts"}
        assert process_strava_activity(raw, ftp=250).normalized_power == 180

    def test_zero_ftp_is_not_an_error(self):
        activity = process_strava_activity(RIDE, ftp=0)
        assert (activity.tss, activity.intensity_factor, activity.type) == (0, 0.0, "unknown")

    def test_no_heart_rate(self):
        raw = {k: v for k, v in RIDE.items() if k != "average_heartrate"}
        assert process_strava_activity(raw, ftp=250).ef is None


def test_filter_cycling_activities():
    activities = [{"type": "Ride"}, {"type": "Run"}, {"type": "VirtualRide"}, {"type": "Swim"}]
    assert [a["type"] for a in filter_cycling_activities(activities)] == ["Ride", "VirtualRide"]


def test_tokens_expired():
    tokens = ActivityTokens(access_token="a", refresh_token="r", expires_at=10_000)
    assert tokens_expired(tokens, now=9_000) is False
    assert tokens_expired(tokens, now=9_700) is True
    assert tokens_expired(tokens, now=11_000) is True


def test_enrich_with_streams():
    activity = process_strava_activity(RIDE, ftp=250)
    streams = ActivityStreams(
        watts=[300.0] * 300,
        time=[float(t) for t in range(300)],
        heartrate=[140.0] * 270 + [0.0] * 30,
    )
    enriched = enrich_with_streams(activity, streams, weight_kg=75)
    assert enriched.peak_5min_power == 300
    assert enriched.peak_20min_power is None
    assert enriched.hr_completeness == 90
    assert enriched.vo2max_estimate == 50.2


def test_enrich_without_weight_skips_vo2max():
    activity = process_strava_activity(RIDE, ftp=250)
    streams = ActivityStreams(watts=[250.0] * 300, time=[float(t) for t in range(300)])
    assert enrich_with_streams(activity, streams).vo2max_estimate is None


# ── HTTP source ───────────────────────────────────────────────────────────

def _source(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return StravaActivitySource(client_id="id", client_secret="secret", client=client)


class TestStravaActivitySource:
    def test_fetch_activities_caps_page_size(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json=[RIDE])

        activities = _source(handler).fetch_activities("tok", page=2, per_page=500)
        assert activities == [RIDE]
        assert seen["params"] == {"page": "2", "per_page": str(MAX_PAGE_SIZE)}
        assert seen["auth"] == "Bearer tok"

    def test_error_status(self):
        source = _source(lambda request: httpx.Response(429, json={"message": "Rate Limit"}))
        with pytest.raises(ActivitySourceError, match="Strava API error: 429") as excinfo:
            source.fetch_activity("tok", 1)
        assert excinfo.value.status_code == 429

    def test_fetch_streams(self):
        def handler(request):
            assert request.url.path == "/api/v3/activities/7/streams"
            assert request.url.params["key_by_type"] == "true"
            return httpx.Response(
                200,
                json={"watts": {"data": [100, 200]}, "time": {"data": [0, 1]}},
            )

        streams = _source(handler).fetch_streams("tok", 7)
        assert streams.watts == [100, 200]
        assert streams.heartrate is None
        assert streams.sample_count == 2

    def test_refresh_tokens(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["grant_type"] == "refresh_token"
            assert body["refresh_token"] == "old"
            return httpx.Response(
                200,
                json={"access_token": "new", "refresh_token": "r2", "expires_at": 1700000000, "athlete": {"id": 9}},
            )

        tokens = _source(handler).refresh_tokens("old")
        assert tokens == ActivityTokens(access_token="new", refresh_token="r2", expires_at=1700000000, athlete_id=9)

    def test_refresh_failure(self):
        source = _source(lambda request: httpx.Response(401))
        with pytest.raises(ActivitySourceError, match="Token refresh failed: 401"):
            source.refresh_tokens("old")

    def test_fetch_cycling_activities(self):
        run = {**RIDE, "id": 124, "type": "Run"}
        source = _source(lambda request: httpx.Response(200, json=[RIDE, run]))
        rides = source.fetch_cycling_activities("tok", ftp=250)
        assert [r.remote_id for r in rides] == ["123"]
