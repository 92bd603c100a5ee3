"""
Espiritualizei — Routine & Intention Repository.

Persists routine items and prayer intentions in whichever mode the process
runs in. The local store is always written (it is the system of record in
fallback mode and a read-through copy in connected mode); the backend is
written as well when connected.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from src.adapters.backend_factory import Connected
from src.data.profile_codec import (
    CodecError,
    intention_from_row,
    intention_to_row,
    routine_item_from_row,
    routine_item_to_row,
)
from src.ports.backend_port import BackendError

if TYPE_CHECKING:
    from src.adapters.backend_factory import BackendState
    from src.data.local_store import LocalSessionStore
    from src.data.models import PrayerIntention, RoutineItem
    from src.ports.backend_port import BackendPort

logger = logging.getLogger(__name__)

INTENTIONS_PAGE_SIZE = 50


class RoutineRepository:
    """Dual-mode storage for routines (per user) and community intentions."""

    def __init__(self, backend: BackendState, store: LocalSessionStore) -> None:
        self._backend: BackendPort | None = (
            backend.backend if isinstance(backend, Connected) else None
        )
        self._store = store

    # ------------------------------------------------------------------
    # Routine
    # ------------------------------------------------------------------

    async def fetch_routine(self, user_id: str) -> list[RoutineItem]:
        """Load a user's routine; connected mode falls back to the local copy on error."""
        if self._backend is None:
            return self._store.load_routine(user_id)

        try:
            rows = await self._backend.fetch_routine(user_id)
        except BackendError as exc:
            logger.warning("Remote routine unavailable for %s, using local copy: %s", user_id, exc)
            return self._store.load_routine(user_id)

        items: list[RoutineItem] = []
        for row in rows:
            try:
                items.append(routine_item_from_row(row))
            except CodecError as exc:
                logger.warning("Skipping malformed routine row for %s: %s", user_id, exc)
        self._store.save_routine(user_id, items)
        return items

    async def save_routine(self, user_id: str, items: list[RoutineItem]) -> None:
        """Replace the whole routine (used after generation)."""
        self._store.save_routine(user_id, items)
        if self._backend is not None:
            await self._backend.replace_routine(
                user_id, [routine_item_to_row(i, user_id) for i in items]
            )

    async def set_item_completed(self, user_id: str, item_id: str, completed: bool) -> None:
        routine = self._store.load_routine(user_id)
        self._store.save_routine(
            user_id,
            [replace(i, completed=completed) if i.id == item_id else i for i in routine],
        )
        if self._backend is not None:
            await self._backend.set_routine_item_completed(item_id, completed)

    async def add_item(self, user_id: str, item: RoutineItem) -> None:
        routine = [i for i in self._store.load_routine(user_id) if i.id != item.id]
        self._store.save_routine(user_id, routine + [item])
        if self._backend is not None:
            await self._backend.insert_routine_item(routine_item_to_row(item, user_id))

    async def delete_item(self, user_id: str, item_id: str) -> None:
        routine = self._store.load_routine(user_id)
        self._store.save_routine(user_id, [i for i in routine if i.id != item_id])
        if self._backend is not None:
            await self._backend.delete_routine_item(item_id)

    # ------------------------------------------------------------------
    # Prayer intentions
    # ------------------------------------------------------------------

    async def fetch_intentions(self, user_id: str) -> list[PrayerIntention]:
        if self._backend is None:
            return self._store.load_intentions(user_id)

        try:
            rows = await self._backend.fetch_intentions(INTENTIONS_PAGE_SIZE)
            prayed = await self._backend.fetch_prayed_ids(user_id)
        except BackendError as exc:
            logger.warning("Community intentions unavailable: %s", exc)
            return []

        intentions: list[PrayerIntention] = []
        for row in rows:
            try:
                intentions.append(intention_from_row(row, prayed))
            except CodecError as exc:
                logger.warning("Skipping malformed intention row: %s", exc)
        return intentions

    async def create_intention(self, intention: PrayerIntention) -> None:
        if self._backend is not None:
            await self._backend.insert_intention(intention_to_row(intention))
            return
        existing = self._store.load_intentions(intention.author_id)
        self._store.save_intentions([intention] + existing)

    async def set_praying(self, user_id: str, intention_id: str, praying: bool) -> None:
        """Record (or withdraw) the user's prayer for an intention."""
        if self._backend is not None:
            await self._backend.set_prayer_interaction(intention_id, user_id, praying)
            return

        prayed = self._store.load_prayed_ids(user_id)
        if (intention_id in prayed) == praying:
            return
        delta = 1 if praying else -1
        if praying:
            prayed.add(intention_id)
        else:
            prayed.discard(intention_id)
        self._store.save_prayed_ids(user_id, prayed)

        intentions = self._store.load_intentions(user_id)
        self._store.save_intentions([
            replace(i, praying_count=max(0, i.praying_count + delta)) if i.id == intention_id else i
            for i in intentions
        ])
