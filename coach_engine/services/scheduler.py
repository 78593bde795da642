"""Weekly session queue: which planned session is next?

Completed activities are matched to the week's planned sessions greedily in
declaration order. Each activity can satisfy at most one session and the
first session of a type gets first claim on activities of that type, so a
later duplicate never steals credit from an earlier one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from coach_engine.errors import ValidationError

SESSION_TYPES = ("vo2max", "threshold", "endurance", "tempo", "fun", "recovery", "off")

# Only these activity types count toward the weekly queue
MATCHABLE_ACTIVITY_TYPES = frozenset({"vo2max", "threshold", "fun", "recovery"})


@dataclass(frozen=True)
class WeeklySession:
    order: int
    session_type: str
    peloton_class_types: list[str] = field(default_factory=list)
    suggested_duration_minutes: int = 45
    description: str = ""

    def __post_init__(self):
        if self.session_type not in SESSION_TYPES:
            raise ValidationError(f"Unknown session type: {self.session_type}")


def map_activity_type(raw_type: str | None) -> str | None:
    """Session type an activity counts as, or None if it counts for nothing."""
    if raw_type in MATCHABLE_ACTIVITY_TYPES:
        return raw_type
    return None


def _activity_type(activity) -> str | None:
    if isinstance(activity, dict):
        return activity.get("type")
    return getattr(activity, "type", None)


def determine_next_session(
    weekly_sessions: Sequence[WeeklySession],
    completed_activities: Iterable,
) -> WeeklySession | None:
    """First planned session without a matching completed activity.

    ``completed_activities`` items expose a ``type`` (attribute or dict key).
    Returns None for an empty week or when every session is matched.
    """
    if not weekly_sessions:
        return None

    pool = [
        mapped
        for mapped in (map_activity_type(_activity_type(a)) for a in completed_activities)
        if mapped is not None
    ]
    consumed = [False] * len(pool)

    for session in weekly_sessions:
        match = next(
            (
                idx
                for idx, activity_type in enumerate(pool)
                if not consumed[idx] and activity_type == session.session_type
            ),
            None,
        )
        if match is None:
            return session
        consumed[match] = True

    return None
