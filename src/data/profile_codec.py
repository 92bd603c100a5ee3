"""
Espiritualizei — Profile Codec.

Pure mapping between wire shapes and the in-memory entities. Two wire shapes
exist: the snake_case rows of the Supabase tables and the camelCase JSON blobs
kept in the local session store. Missing or unknown fields are defaulted or
rejected here and nowhere else; no function in this module does I/O.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, TypeVar

from src.data.models import (
    ALL_DAYS,
    AuthSession,
    OnboardingData,
    PrayerIntention,
    RoutineAction,
    RoutineIcon,
    RoutineItem,
    SubscriptionStatus,
    TimeOfDay,
    UserProfile,
    utcnow,
)

E = TypeVar("E", bound=Enum)

DEFAULT_NAME = "Peregrino"
DEFAULT_MATURITY = "Iniciante"
DEFAULT_NEXT_LEVEL_XP = 100
DEFAULT_XP_REWARD = 10


class CodecError(ValueError):
    """Raised when a wire record lacks a field that cannot be defaulted."""


# ---------------------------------------------------------------------------
# Primitive coercion
# ---------------------------------------------------------------------------


def parse_datetime(value: Any) -> datetime | None:
    """Accept a datetime, an ISO-8601 string (``Z`` suffix allowed) or epoch ms."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _int_at_least(value: Any, minimum: int, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return max(minimum, number)


def coerce_enum(enum_cls: type[E], value: Any, default: E) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        if isinstance(value, str):
            for member in enum_cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return default


def normalize_days(values: Iterable[Any] | None) -> list[int]:
    """Sorted, de-duplicated weekdays in 0..6; an empty result means every day."""
    days: set[int] = set()
    for raw in values or ():
        if isinstance(raw, bool):
            continue
        try:
            day = int(raw)
        except (TypeError, ValueError, OverflowError):
            continue
        if 0 <= day <= 6:
            days.add(day)
    return sorted(days) if days else list(ALL_DAYS)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _require(record: dict, key: str) -> Any:
    value = record.get(key)
    if value is None or value == "":
        raise CodecError(f"missing required field {key!r}")
    return value


# ---------------------------------------------------------------------------
# Profile <-> Supabase row
# ---------------------------------------------------------------------------

PROFILE_COLUMNS = frozenset({
    "id", "name", "phone", "level", "current_xp", "streak_days",
    "spiritual_maturity", "patron_saint", "spiritual_focus", "spiritual_goal",
    "last_routine_update", "last_confession_at", "confession_frequency",
    "is_premium", "subscription_status", "joined_date", "state_of_life",
})


def profile_from_row(row: dict, email: str) -> UserProfile:
    """Decode a ``profiles`` row. Only ``id`` is mandatory.

    ``bio``, ``photo_url`` and ``next_level_xp`` have no column and take
    their defaults.
    """
    joined = parse_datetime(row.get("joined_date")) or utcnow()
    return UserProfile(
        id=str(_require(row, "id")),
        name=_optional_str(row.get("name")) or DEFAULT_NAME,
        email=email,
        phone=_optional_str(row.get("phone")),
        level=_int_at_least(row.get("level"), 1, 1),
        current_xp=_int_at_least(row.get("current_xp"), 0, 0),
        streak_days=_int_at_least(row.get("streak_days"), 0, 0),
        spiritual_maturity=_optional_str(row.get("spiritual_maturity")) or DEFAULT_MATURITY,
        spiritual_focus=_optional_str(row.get("spiritual_focus")),
        spiritual_goal=_optional_str(row.get("spiritual_goal")),
        patron_saint=_optional_str(row.get("patron_saint")),
        state_of_life=_optional_str(row.get("state_of_life")),
        confession_frequency=_optional_str(row.get("confession_frequency")),
        joined_date=joined,
        last_routine_update=parse_datetime(row.get("last_routine_update")) or joined,
        last_confession_at=parse_datetime(row.get("last_confession_at")),
        is_premium=bool(row.get("is_premium") or False),
        subscription_status=coerce_enum(
            SubscriptionStatus, row.get("subscription_status"), SubscriptionStatus.CANCELED
        ),
    )


def profile_update_row(profile: UserProfile) -> dict:
    """Columns written on every profile update.

    ``id`` and ``joined_date`` are never part of an update: the first is
    immutable and the second must not regress.
    """
    return {
        "name": profile.name,
        "phone": profile.phone,
        "level": profile.level,
        "current_xp": max(0, profile.current_xp),
        "streak_days": profile.streak_days,
        "spiritual_maturity": profile.spiritual_maturity,
        "patron_saint": profile.patron_saint,
        "spiritual_focus": profile.spiritual_focus,
        "spiritual_goal": profile.spiritual_goal,
        "state_of_life": profile.state_of_life,
        "last_routine_update": format_datetime(profile.last_routine_update),
        "last_confession_at": format_datetime(profile.last_confession_at),
        "confession_frequency": profile.confession_frequency,
        "is_premium": profile.is_premium,
        "subscription_status": profile.subscription_status.value,
    }


def registration_row(user_id: str, data: OnboardingData, joined: datetime) -> dict:
    """Initial ``profiles`` row written right after sign-up."""
    return {
        "id": user_id,
        "name": data.name.strip(),
        "phone": data.phone,
        "spiritual_maturity": DEFAULT_MATURITY,
        "spiritual_focus": data.primary_struggle,
        "spiritual_goal": data.spiritual_goal,
        "state_of_life": data.state_of_life,
        "patron_saint": data.patron_saint,
        "confession_frequency": data.confession_frequency,
        "level": 1,
        "current_xp": 0,
        "streak_days": 0,
        "is_premium": False,
        "subscription_status": SubscriptionStatus.TRIAL.value,
        "joined_date": format_datetime(joined),
        "last_routine_update": format_datetime(joined),
    }


# ---------------------------------------------------------------------------
# Profile / session <-> local JSON
# ---------------------------------------------------------------------------


def profile_to_dict(profile: UserProfile) -> dict:
    return {
        "id": profile.id,
        "name": profile.name,
        "email": profile.email,
        "phone": profile.phone,
        "bio": profile.bio,
        "photoUrl": profile.photo_url,
        "level": profile.level,
        "currentXP": profile.current_xp,
        "nextLevelXP": profile.next_level_xp,
        "streakDays": profile.streak_days,
        "spiritualMaturity": profile.spiritual_maturity,
        "spiritualFocus": profile.spiritual_focus,
        "spiritualGoal": profile.spiritual_goal,
        "patronSaint": profile.patron_saint,
        "stateOfLife": profile.state_of_life,
        "confessionFrequency": profile.confession_frequency,
        "joinedDate": format_datetime(profile.joined_date),
        "lastRoutineUpdate": format_datetime(profile.last_routine_update),
        "lastConfessionAt": format_datetime(profile.last_confession_at),
        "isPremium": profile.is_premium,
        "subscriptionStatus": profile.subscription_status.value,
    }


def profile_from_dict(data: dict) -> UserProfile:
    """Decode a locally stored profile. Raises CodecError if identity is missing."""
    joined = parse_datetime(_require(data, "joinedDate"))
    if joined is None:
        raise CodecError("unreadable joinedDate")
    return UserProfile(
        id=str(_require(data, "id")),
        name=str(data.get("name") or DEFAULT_NAME),
        email=str(_require(data, "email")),
        phone=_optional_str(data.get("phone")),
        bio=_optional_str(data.get("bio")),
        photo_url=_optional_str(data.get("photoUrl")),
        level=_int_at_least(data.get("level"), 1, 1),
        current_xp=_int_at_least(data.get("currentXP"), 0, 0),
        next_level_xp=_int_at_least(data.get("nextLevelXP"), 1, DEFAULT_NEXT_LEVEL_XP),
        streak_days=_int_at_least(data.get("streakDays"), 0, 0),
        spiritual_maturity=str(data.get("spiritualMaturity") or DEFAULT_MATURITY),
        spiritual_focus=_optional_str(data.get("spiritualFocus")),
        spiritual_goal=_optional_str(data.get("spiritualGoal")),
        patron_saint=_optional_str(data.get("patronSaint")),
        state_of_life=_optional_str(data.get("stateOfLife")),
        confession_frequency=_optional_str(data.get("confessionFrequency")),
        joined_date=joined,
        last_routine_update=parse_datetime(data.get("lastRoutineUpdate")) or joined,
        last_confession_at=parse_datetime(data.get("lastConfessionAt")),
        is_premium=bool(data.get("isPremium") or False),
        subscription_status=coerce_enum(
            SubscriptionStatus, data.get("subscriptionStatus"), SubscriptionStatus.TRIAL
        ),
    )


def session_to_dict(session: AuthSession) -> dict:
    return {
        "user": profile_to_dict(session.user),
        "token": session.token,
        "expiresAt": session.expires_at,
    }


def session_from_dict(data: dict) -> AuthSession:
    user = data.get("user")
    if not isinstance(user, dict):
        raise CodecError("session has no user")
    expires_at = data.get("expiresAt")
    if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
        raise CodecError("session has no numeric expiresAt")
    try:
        expires_at = int(expires_at)
    except (OverflowError, ValueError) as exc:
        raise CodecError(f"unusable expiresAt: {exc}") from exc
    return AuthSession(
        user=profile_from_dict(user),
        token=str(data.get("token") or ""),
        expires_at=expires_at,
    )


def local_user_to_dict(profile: UserProfile, password: str) -> dict:
    """Fallback-mode user table record: the profile plus its plaintext password."""
    return {**profile_to_dict(profile), "password": password}


def local_user_from_dict(data: dict) -> tuple[UserProfile, str]:
    return profile_from_dict(data), str(data.get("password") or "")


# ---------------------------------------------------------------------------
# Routine items
# ---------------------------------------------------------------------------


def routine_item_from_row(row: dict) -> RoutineItem:
    """Decode a ``routine_items`` row (snake_case)."""
    return RoutineItem(
        id=str(_require(row, "id")),
        title=str(row.get("title") or ""),
        description=str(row.get("description") or ""),
        xp_reward=_int_at_least(row.get("xp_reward"), 1, DEFAULT_XP_REWARD),
        completed=bool(row.get("completed") or False),
        icon=coerce_enum(RoutineIcon, row.get("icon"), RoutineIcon.BOOK),
        time_of_day=coerce_enum(TimeOfDay, row.get("time_of_day"), TimeOfDay.ANY),
        day_of_week=normalize_days(row.get("day_of_week")),
        action_link=coerce_enum(RoutineAction, row.get("action_link"), RoutineAction.NONE),
    )


def routine_item_to_row(item: RoutineItem, user_id: str) -> dict:
    return {
        "id": item.id,
        "user_id": user_id,
        "title": item.title,
        "description": item.description,
        "xp_reward": item.xp_reward,
        "completed": item.completed,
        "icon": item.icon.value,
        "time_of_day": item.time_of_day.value,
        "day_of_week": normalize_days(item.day_of_week),
        "action_link": item.action_link.value,
    }


def routine_item_to_dict(item: RoutineItem) -> dict:
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "xpReward": item.xp_reward,
        "completed": item.completed,
        "icon": item.icon.value,
        "timeOfDay": item.time_of_day.value,
        "dayOfWeek": normalize_days(item.day_of_week),
        "actionLink": item.action_link.value,
    }


def routine_item_from_dict(data: dict) -> RoutineItem:
    return RoutineItem(
        id=str(_require(data, "id")),
        title=str(data.get("title") or ""),
        description=str(data.get("description") or ""),
        xp_reward=_int_at_least(data.get("xpReward"), 1, DEFAULT_XP_REWARD),
        completed=bool(data.get("completed") or False),
        icon=coerce_enum(RoutineIcon, data.get("icon"), RoutineIcon.BOOK),
        time_of_day=coerce_enum(TimeOfDay, data.get("timeOfDay"), TimeOfDay.ANY),
        day_of_week=normalize_days(data.get("dayOfWeek")),
        action_link=coerce_enum(RoutineAction, data.get("actionLink"), RoutineAction.NONE),
    )


# ---------------------------------------------------------------------------
# Prayer intentions
# ---------------------------------------------------------------------------


def intention_from_row(row: dict, prayed_ids: set[str]) -> PrayerIntention:
    intention_id = str(_require(row, "id"))
    return PrayerIntention(
        id=intention_id,
        author_id=str(row.get("user_id") or ""),
        author_name=str(row.get("author_name") or DEFAULT_NAME),
        author_photo_url=_optional_str(row.get("author_photo_url")),
        content=str(row.get("content") or ""),
        category=str(row.get("category") or ""),
        praying_count=_int_at_least(row.get("praying_count"), 0, 0),
        is_prayed_by_user=intention_id in prayed_ids,
        created_at=parse_datetime(row.get("created_at")) or utcnow(),
    )


def intention_to_row(intention: PrayerIntention) -> dict:
    return {
        "id": intention.id,
        "user_id": intention.author_id,
        "author_name": intention.author_name,
        "author_photo_url": intention.author_photo_url,
        "content": intention.content,
        "category": intention.category,
        "praying_count": intention.praying_count,
        "created_at": format_datetime(intention.created_at),
    }


def intention_to_dict(intention: PrayerIntention) -> dict:
    return {
        "id": intention.id,
        "authorId": intention.author_id,
        "authorName": intention.author_name,
        "authorPhotoUrl": intention.author_photo_url,
        "content": intention.content,
        "category": intention.category,
        "prayingCount": intention.praying_count,
        "createdAt": format_datetime(intention.created_at),
    }


def intention_from_dict(data: dict, prayed_ids: set[str]) -> PrayerIntention:
    intention_id = str(_require(data, "id"))
    return PrayerIntention(
        id=intention_id,
        author_id=str(data.get("authorId") or ""),
        author_name=str(data.get("authorName") or DEFAULT_NAME),
        author_photo_url=_optional_str(data.get("authorPhotoUrl")),
        content=str(data.get("content") or ""),
        category=str(data.get("category") or ""),
        praying_count=_int_at_least(data.get("prayingCount"), 0, 0),
        is_prayed_by_user=intention_id in prayed_ids,
        created_at=parse_datetime(data.get("createdAt")) or utcnow(),
    )
