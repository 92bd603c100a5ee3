"""
Espiritualizei — Local Session Store.

Durable key-value store on SQLite. In connected mode it only caches the
current session; in fallback mode it is the system of record for users,
routines and prayer intentions.

Every record is a JSON blob replaced in full on write (last writer wins).
A blob that fails to parse or decode reads as absent: corrupted storage is
never an error for callers.

Fallback-mode passwords are stored in plaintext. That is acceptable only
because fallback mode has no trust boundary: no credential ever leaves the
device.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from src.data.models import AuthSession, PrayerIntention, RoutineItem, UserProfile
from src.data.profile_codec import (
    CodecError,
    intention_from_dict,
    intention_to_dict,
    local_user_from_dict,
    local_user_to_dict,
    routine_item_from_dict,
    routine_item_to_dict,
    session_from_dict,
    session_to_dict,
)

logger = logging.getLogger(__name__)

SESSION_KEY = "espiritualizei_session"
USERS_KEY = "espiritualizei_users_db"
DAILY_INSPIRATION_KEY = "espiritualizei_daily_inspiration_date"
INTENTIONS_KEY = "espiritualizei_intentions"
_ROUTINE_PREFIX = "espiritualizei_routine:"
_PRAYED_PREFIX = "espiritualizei_prayed:"


class LocalSessionStore:
    """SQLite-backed key-value storage for sessions and fallback-mode data."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key        TEXT PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """)
        logger.debug("kv_store table initialized at %s", self._db_path)

    # ------------------------------------------------------------------
    # Raw key-value access
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any | None:
        """Return the decoded JSON value for key, or None if absent/unparseable."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring unreadable value under '%s': %s", key, exc)
            return None

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, payload),
            )

    def set_raw(self, key: str, raw: str) -> None:
        """Store a string as-is, without JSON encoding."""
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, raw),
            )

    def remove(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    # ------------------------------------------------------------------
    # Current session
    # ------------------------------------------------------------------

    def load_session(self) -> AuthSession | None:
        data = self.get(SESSION_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return session_from_dict(data)
        except (CodecError, TypeError, ValueError, OverflowError) as exc:
            logger.warning("Stored session is corrupted, treating as absent: %s", exc)
            return None

    def save_session(self, session: AuthSession) -> None:
        self.set(SESSION_KEY, session_to_dict(session))

    def clear_session(self) -> None:
        self.remove(SESSION_KEY)
        logger.debug("Local session cleared")

    # ------------------------------------------------------------------
    # Fallback-mode user table
    # ------------------------------------------------------------------

    def _user_records(self) -> list[dict]:
        data = self.get(USERS_KEY)
        if not isinstance(data, list):
            return []
        return [r for r in data if isinstance(r, dict)]

    def find_user(self, email: str) -> tuple[UserProfile, str] | None:
        """Return (profile, password) for a normalized email, or None."""
        for record in self._user_records():
            if record.get("email") != email:
                continue
            try:
                return local_user_from_dict(record)
            except (CodecError, TypeError, ValueError, OverflowError) as exc:
                logger.warning("Skipping corrupted local user record: %s", exc)
        return None

    def email_exists(self, email: str) -> bool:
        return any(r.get("email") == email for r in self._user_records())

    def add_user(self, profile: UserProfile, password: str) -> None:
        records = self._user_records()
        records.append(local_user_to_dict(profile, password))
        self.set(USERS_KEY, records)
        logger.info("Local user registered: %s", profile.id)

    def update_user_profile(self, profile: UserProfile) -> bool:
        """Replace the stored profile of an existing local user, keeping its password."""
        records = self._user_records()
        for index, record in enumerate(records):
            if record.get("id") == profile.id:
                records[index] = local_user_to_dict(profile, str(record.get("password") or ""))
                self.set(USERS_KEY, records)
                return True
        return False

    # ------------------------------------------------------------------
    # Routines (keyed by user id)
    # ------------------------------------------------------------------

    def load_routine(self, user_id: str) -> list[RoutineItem]:
        data = self.get(_ROUTINE_PREFIX + user_id)
        if not isinstance(data, list):
            return []
        items: list[RoutineItem] = []
        for record in data:
            if not isinstance(record, dict):
                continue
            try:
                items.append(routine_item_from_dict(record))
            except CodecError as exc:
                logger.warning("Skipping corrupted routine item for %s: %s", user_id, exc)
        return items

    def save_routine(self, user_id: str, items: list[RoutineItem]) -> None:
        self.set(_ROUTINE_PREFIX + user_id, [routine_item_to_dict(i) for i in items])

    # ------------------------------------------------------------------
    # Prayer intentions
    # ------------------------------------------------------------------

    def load_prayed_ids(self, user_id: str) -> set[str]:
        data = self.get(_PRAYED_PREFIX + user_id)
        if not isinstance(data, list):
            return set()
        return {str(i) for i in data}

    def save_prayed_ids(self, user_id: str, ids: set[str]) -> None:
        self.set(_PRAYED_PREFIX + user_id, sorted(ids))

    def load_intentions(self, user_id: str) -> list[PrayerIntention]:
        data = self.get(INTENTIONS_KEY)
        if not isinstance(data, list):
            return []
        prayed = self.load_prayed_ids(user_id)
        intentions: list[PrayerIntention] = []
        for record in data:
            if not isinstance(record, dict):
                continue
            try:
                intentions.append(intention_from_dict(record, prayed))
            except CodecError as exc:
                logger.warning("Skipping corrupted intention: %s", exc)
        return intentions

    def save_intentions(self, intentions: list[PrayerIntention]) -> None:
        self.set(INTENTIONS_KEY, [intention_to_dict(i) for i in intentions])

    # ------------------------------------------------------------------
    # Daily inspiration prompt
    # ------------------------------------------------------------------

    def get_last_inspiration_date(self) -> str | None:
        value = self.get(DAILY_INSPIRATION_KEY)
        return value if isinstance(value, str) else None

    def set_last_inspiration_date(self, day: str) -> None:
        self.set(DAILY_INSPIRATION_KEY, day)
