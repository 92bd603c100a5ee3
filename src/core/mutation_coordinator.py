"""
Espiritualizei — Optimistic Mutation Coordinator.

Holds the in-memory user, routine and intentions of a signed-in session.
Every mutation is applied to memory first (one assignment per collection, so
readers never observe a half-applied change) and its persistence is then
scheduled in the background. A persistence failure is logged and counted;
the in-memory state is not rolled back.

Methods that schedule persistence must be called from the running event loop.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import TYPE_CHECKING

from src.data.models import (
    ALL_DAYS,
    PrayerIntention,
    RoutineAction,
    RoutineIcon,
    RoutineItem,
    TimeOfDay,
    utcnow,
)
from src.data.profile_codec import DEFAULT_XP_REWARD, normalize_days

if TYPE_CHECKING:
    from src.core.session_manager import SessionManager
    from src.data.models import UserProfile
    from src.data.routine_repository import RoutineRepository

logger = logging.getLogger(__name__)


class OptimisticMutationCoordinator:

    def __init__(
        self,
        sessions: SessionManager,
        repository: RoutineRepository,
        user: UserProfile,
        routine: list[RoutineItem] | None = None,
        intentions: list[PrayerIntention] | None = None,
    ) -> None:
        self._sessions = sessions
        self._repository = repository
        self._tasks = sessions.tasks
        self.user = user
        self.routine: list[RoutineItem] = list(routine or [])
        self.intentions: list[PrayerIntention] = list(intentions or [])

    # ------------------------------------------------------------------
    # Routine
    # ------------------------------------------------------------------

    def toggle_routine_item(self, item_id: str) -> RoutineItem | None:
        """Flip an item's completion and move XP accordingly.

        Returns the updated item, or None when the id is unknown (no-op).
        """
        item = next((i for i in self.routine if i.id == item_id), None)
        if item is None:
            logger.debug("Toggle ignored: routine item %s not found", item_id)
            return None

        completed = not item.completed
        delta = item.xp_reward if completed else -item.xp_reward
        updated_item = replace(item, completed=completed)

        self.routine = [updated_item if i.id == item_id else i for i in self.routine]
        self.user = replace(self.user, current_xp=max(0, self.user.current_xp + delta))

        self._sessions.update_profile(self.user)
        self._tasks.spawn(
            self._repository.set_item_completed(self.user.id, item_id, completed),
            label=f"routine-status:{item_id}",
        )
        logger.info(
            "Routine item %s %s (xp now %d)",
            item_id, "completed" if completed else "reopened", self.user.current_xp,
        )
        return updated_item

    def add_routine_item(
        self,
        title: str,
        description: str = "",
        xp_reward: int = DEFAULT_XP_REWARD,
        icon: RoutineIcon = RoutineIcon.BOOK,
        time_of_day: TimeOfDay = TimeOfDay.ANY,
        day_of_week: list[int] | None = None,
        action_link: RoutineAction = RoutineAction.NONE,
    ) -> RoutineItem:
        item = RoutineItem(
            id=str(uuid.uuid4()),
            title=title.strip(),
            description=description.strip(),
            xp_reward=xp_reward if xp_reward > 0 else DEFAULT_XP_REWARD,
            completed=False,
            icon=icon,
            time_of_day=time_of_day,
            day_of_week=normalize_days(day_of_week) if day_of_week is not None else list(ALL_DAYS),
            action_link=action_link,
        )
        self.routine = self.routine + [item]
        self._tasks.spawn(
            self._repository.add_item(self.user.id, item), label=f"routine-add:{item.id}"
        )
        return item

    def delete_routine_item(self, item_id: str) -> bool:
        if not any(i.id == item_id for i in self.routine):
            return False
        self.routine = [i for i in self.routine if i.id != item_id]
        self._tasks.spawn(
            self._repository.delete_item(self.user.id, item_id), label=f"routine-delete:{item_id}"
        )
        return True

    # ------------------------------------------------------------------
    # Intentions
    # ------------------------------------------------------------------

    def toggle_pray(self, intention_id: str) -> PrayerIntention | None:
        intention = next((i for i in self.intentions if i.id == intention_id), None)
        if intention is None:
            return None

        praying = not intention.is_prayed_by_user
        count = intention.praying_count + (1 if praying else -1)
        updated = replace(intention, is_prayed_by_user=praying, praying_count=max(0, count))

        self.intentions = [updated if i.id == intention_id else i for i in self.intentions]
        self._tasks.spawn(
            self._repository.set_praying(self.user.id, intention_id, praying),
            label=f"prayer:{intention_id}",
        )
        return updated

    def create_intention(self, content: str, category: str) -> PrayerIntention:
        intention = PrayerIntention(
            id=str(uuid.uuid4()),
            author_id=self.user.id,
            author_name=self.user.name,
            author_photo_url=self.user.photo_url,
            content=content.strip(),
            category=category,
            created_at=utcnow(),
        )
        self.intentions = [intention] + self.intentions
        self._tasks.spawn(
            self._repository.create_intention(intention), label=f"intention:{intention.id}"
        )
        return intention

    # ------------------------------------------------------------------

    def replace_user(self, user: UserProfile) -> None:
        """Adopt a profile changed elsewhere (premium upgrade, edits) and persist it."""
        self.user = user
        self._sessions.update_profile(user)

    async def drain(self) -> None:
        """Wait for all scheduled persistence to finish."""
        await self._tasks.drain()
