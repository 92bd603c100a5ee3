"""
Espiritualizei — UI-Agnostic App Service.

Orchestrates the flows a front end drives: onboarding (register, generate
the routine, enrich the profile), restoring a saved session at start-up,
login, logout and the premium upgrade.

Each UI calls this service and renders the returned objects in its own way.
Expected failures (wrong password, e-mail taken, offline backend) come back
as result objects carrying a user-visible message; nothing here raises for
them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

from src.adapters.backend_factory import create_backend
from src.core.background import BackgroundTasks
from src.core.mutation_coordinator import OptimisticMutationCoordinator
from src.core.routine_generator import generate_routine
from src.core.session_manager import (
    MSG_NETWORK,
    AuthOutcome,
    SessionManager,
)
from src.data.local_store import LocalSessionStore
from src.data.models import SubscriptionStatus, utcnow
from src.data.routine_repository import RoutineRepository
from src.ports.backend_port import BackendError, NetworkError

if TYPE_CHECKING:
    from src.config import Settings
    from src.data.models import AuthSession, OnboardingData

logger = logging.getLogger(__name__)

MSG_ONBOARDING_FAILED = "Tivemos um problema ao preparar seu plano. Tente novamente."


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


class ResultKind(Enum):
    SUCCESS = "success"
    AUTH_REJECTED = "auth_rejected"
    PENDING_CONFIRMATION = "pending_confirmation"
    NETWORK_ERROR = "network_error"
    ERROR = "error"


_AUTH_KINDS: dict[AuthOutcome, ResultKind] = {
    AuthOutcome.SUCCESS: ResultKind.SUCCESS,
    AuthOutcome.INVALID_CREDENTIALS: ResultKind.AUTH_REJECTED,
    AuthOutcome.DUPLICATE_EMAIL: ResultKind.AUTH_REJECTED,
    AuthOutcome.REGISTRATION_PENDING: ResultKind.PENDING_CONFIRMATION,
}


@dataclass
class OnboardingResult:
    kind: ResultKind
    message: str = ""
    outcome: AuthOutcome | None = None
    coordinator: OptimisticMutationCoordinator | None = None
    profile_description: str = ""
    profile_reasoning: str = ""
    used_fallback_routine: bool = False

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS


@dataclass
class LoginResult:
    kind: ResultKind
    message: str = ""
    outcome: AuthOutcome | None = None
    restored: RestoredSession | None = None

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS


@dataclass
class RestoredSession:
    session: AuthSession
    coordinator: OptimisticMutationCoordinator
    show_daily_inspiration: bool = False
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AppService:

    def __init__(self, sessions: SessionManager, repository: RoutineRepository) -> None:
        self.sessions = sessions
        self.repository = repository

    @property
    def connected(self) -> bool:
        return self.sessions.connected

    def _coordinator(self, session: AuthSession, routine=None, intentions=None):
        return OptimisticMutationCoordinator(
            self.sessions, self.repository, session.user, routine, intentions
        )

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------

    async def complete_onboarding(self, data: OnboardingData) -> OnboardingResult:
        """Register, generate the routine, enrich and persist the profile."""
        try:
            auth = await self.sessions.register(data)
        except NetworkError as exc:
            logger.warning("Onboarding registration offline: %s", exc)
            return OnboardingResult(ResultKind.NETWORK_ERROR, MSG_NETWORK)
        except BackendError as exc:
            logger.error("Onboarding registration rejected: %s", exc)
            return OnboardingResult(ResultKind.ERROR, str(exc) or MSG_ONBOARDING_FAILED)

        if not auth.ok or auth.session is None:
            return OnboardingResult(_AUTH_KINDS[auth.outcome], auth.message, outcome=auth.outcome)

        session = auth.session
        generated = await generate_routine(data)

        profile = replace(
            session.user,
            spiritual_maturity=generated.profile_description,
            spiritual_focus=data.primary_struggle,
            spiritual_goal=data.spiritual_goal,
            patron_saint=data.patron_saint,
            confession_frequency=data.confession_frequency,
            last_routine_update=utcnow(),
        )
        self.sessions.update_profile(profile)

        try:
            await self.repository.save_routine(profile.id, generated.routine)
        except BackendError as exc:
            logger.error("Could not save generated routine for %s: %s", profile.id, exc)

        coordinator = self._coordinator(replace(session, user=profile), generated.routine)
        logger.info(
            "Onboarding complete for %s (%d routine items%s)",
            profile.id, len(generated.routine), ", fallback" if generated.used_fallback else "",
        )
        return OnboardingResult(
            ResultKind.SUCCESS,
            outcome=AuthOutcome.SUCCESS,
            coordinator=coordinator,
            profile_description=generated.profile_description,
            profile_reasoning=generated.profile_reasoning,
            used_fallback_routine=generated.used_fallback,
        )

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> LoginResult:
        try:
            auth = await self.sessions.login(email, password)
        except NetworkError as exc:
            logger.warning("Login offline: %s", exc)
            return LoginResult(ResultKind.NETWORK_ERROR, MSG_NETWORK)

        if not auth.ok or auth.session is None:
            return LoginResult(_AUTH_KINDS[auth.outcome], auth.message, outcome=auth.outcome)
        restored = await self._load(auth.session)
        return LoginResult(ResultKind.SUCCESS, outcome=auth.outcome, restored=restored)

    async def restore(self, today: date | None = None) -> RestoredSession | None:
        """Resume the stored session; None when absent, unreadable or expired."""
        session = self.sessions.get_session()
        if session is None:
            return None
        if session.is_expired():
            logger.info("Stored session for %s expired", session.user.id)
            return None

        restored = await self._load(session)

        day = (today or date.today()).isoformat()
        if self.sessions.store.get_last_inspiration_date() != day:
            self.sessions.store.set_last_inspiration_date(day)
            restored.show_daily_inspiration = True
        return restored

    async def _load(self, session: AuthSession) -> RestoredSession:
        warnings: list[str] = []
        user_id = session.user.id
        try:
            routine = await self.repository.fetch_routine(user_id)
        except BackendError as exc:
            logger.warning("Routine load failed for %s: %s", user_id, exc)
            routine = []
            warnings.append(MSG_NETWORK)
        try:
            intentions = await self.repository.fetch_intentions(user_id)
        except BackendError as exc:
            logger.warning("Intentions load failed for %s: %s", user_id, exc)
            intentions = []
            warnings.append(MSG_NETWORK)
        return RestoredSession(
            session=session,
            coordinator=self._coordinator(session, routine, intentions),
            warnings=warnings,
        )

    async def logout(self, coordinator: OptimisticMutationCoordinator | None = None) -> None:
        """Flush pending writes of the session, then sign out."""
        if coordinator is not None:
            await coordinator.drain()
        await self.sessions.logout()

    def upgrade_to_premium(self, coordinator: OptimisticMutationCoordinator) -> None:
        coordinator.replace_user(replace(
            coordinator.user,
            is_premium=True,
            subscription_status=SubscriptionStatus.ACTIVE,
        ))
        logger.info("User %s upgraded to premium", coordinator.user.id)

    async def shutdown(self) -> None:
        await self.sessions.tasks.drain()


def build_app_service(config: Settings | None = None) -> AppService:
    """Wire backend, local store and services from configuration."""
    if config is None:
        from src.config import settings
        config = settings

    backend = create_backend(config)
    store = LocalSessionStore(config.DATABASE_PATH)
    tasks = BackgroundTasks()
    sessions = SessionManager(
        backend, store, tasks, password_reset_redirect=config.PASSWORD_RESET_REDIRECT_URL,
    )
    return AppService(sessions, RoutineRepository(backend, store))
