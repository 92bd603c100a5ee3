"""Tests for src.data.models — entity defaults and session expiry."""

from dataclasses import asdict
from datetime import datetime, timezone

from src.data.models import (
    AuthSession,
    RoutineAction,
    RoutineIcon,
    RoutineItem,
    SubscriptionStatus,
    TimeOfDay,
    UserProfile,
    now_ms,
)


def _profile(**overrides):
    joined = datetime(2025, 1, 1, tzinfo=timezone.utc)
    fields = dict(id="u1", name="Ana", email="a@a.com", joined_date=joined, last_routine_update=joined)
    fields.update(overrides)
    return UserProfile(**fields)


def test_profile_defaults():
    profile = _profile()
    assert profile.level == 1
    assert profile.current_xp == 0
    assert profile.next_level_xp == 100
    assert profile.streak_days == 0
    assert profile.spiritual_maturity == "Iniciante"
    assert profile.is_premium is False
    assert profile.subscription_status is SubscriptionStatus.TRIAL


def test_routine_item_defaults():
    item = RoutineItem(id="r1", title="Terço", description="", xp_reward=30)
    assert item.completed is False
    assert item.icon is RoutineIcon.BOOK
    assert item.time_of_day is TimeOfDay.ANY
    assert item.day_of_week == [0, 1, 2, 3, 4, 5, 6]
    assert item.action_link is RoutineAction.NONE


def test_routine_items_do_not_share_day_lists():
    a = RoutineItem(id="a", title="A", description="", xp_reward=10)
    b = RoutineItem(id="b", title="B", description="", xp_reward=10)
    a.day_of_week.append(9)
    assert b.day_of_week == [0, 1, 2, 3, 4, 5, 6]


def test_session_expiry():
    session = AuthSession(user=_profile(), token="t", expires_at=1_000)
    assert session.is_expired(at_ms=1_000) is True
    assert session.is_expired(at_ms=999) is False
    assert AuthSession(user=_profile(), token="t", expires_at=now_ms() + 60_000).is_expired() is False


def test_enums_serialize_as_plain_strings():
    d = asdict(RoutineItem(id="r1", title="x", description="", xp_reward=10, icon=RoutineIcon.SUN))
    assert d["icon"] == "sun"
    assert TimeOfDay.NIGHT == "night"
