"""
Espiritualizei — Data Models.

Identity, session and routine entities shared by every layer. Wire formats
(Supabase rows, local JSON blobs) are converted to and from these types only
in src.data.profile_codec.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current time as epoch milliseconds (the unit of AuthSession.expires_at)."""
    return int(time.time() * 1000)


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    CANCELED = "canceled"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    NIGHT = "night"
    ANY = "any"


class RoutineIcon(str, Enum):
    ROSARY = "rosary"
    BOOK = "book"
    CROSS = "cross"
    CANDLE = "candle"
    SUN = "sun"
    HEART = "heart"
    SHIELD = "shield"
    MOON = "moon"
    CHURCH = "church"
    MUSIC = "music"


class RoutineAction(str, Enum):
    NONE = "NONE"
    READ_LITURGY = "READ_LITURGY"
    OPEN_MAP = "OPEN_MAP"


ALL_DAYS: tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6)


@dataclass
class UserProfile:
    """Identity and progression snapshot of a user."""

    id: str
    name: str
    email: str
    joined_date: datetime
    last_routine_update: datetime
    phone: str | None = None
    bio: str | None = None
    photo_url: str | None = None
    level: int = 1
    current_xp: int = 0
    next_level_xp: int = 100
    streak_days: int = 0
    spiritual_maturity: str = "Iniciante"
    spiritual_focus: str | None = None
    spiritual_goal: str | None = None
    patron_saint: str | None = None
    state_of_life: str | None = None
    confession_frequency: str | None = None
    last_confession_at: datetime | None = None
    is_premium: bool = False
    subscription_status: SubscriptionStatus = SubscriptionStatus.TRIAL


@dataclass
class AuthSession:
    """The authenticated user plus an opaque credential.

    Expiration is enforced by callers: the store keeps expired sessions.
    """

    user: UserProfile
    token: str
    expires_at: int  # epoch milliseconds

    def is_expired(self, at_ms: int | None = None) -> bool:
        return self.expires_at <= (now_ms() if at_ms is None else at_ms)


@dataclass
class RoutineItem:
    """A single practice in a user's spiritual routine."""

    id: str
    title: str
    description: str
    xp_reward: int
    completed: bool = False
    icon: RoutineIcon = RoutineIcon.BOOK
    time_of_day: TimeOfDay = TimeOfDay.ANY
    day_of_week: list[int] = field(default_factory=lambda: list(ALL_DAYS))
    action_link: RoutineAction = RoutineAction.NONE


@dataclass
class OnboardingData:
    """Answers collected once during onboarding; not retained after registration."""

    name: str
    email: str
    password: str
    phone: str | None = None
    state_of_life: str = ""
    primary_struggle: str = ""
    spiritual_goal: str = ""
    patron_saint: str = ""
    confession_frequency: str = ""


@dataclass
class PrayerIntention:
    """A community prayer request and the current user's interaction with it."""

    id: str
    author_id: str
    author_name: str
    content: str
    category: str
    created_at: datetime
    author_photo_url: str | None = None
    praying_count: int = 0
    is_prayed_by_user: bool = False


@dataclass
class Parish:
    """A nearby church returned by the places lookup."""

    name: str
    address: str
    lat: float
    lng: float
    rating: float | None = None
    user_ratings_total: int | None = None
    open_now: bool | None = None
    url: str | None = None
    photo_url: str | None = None
    directions_url: str | None = None
