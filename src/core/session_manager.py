"""
Espiritualizei — Session Manager.

Owns the canonical AuthSession of the running process and keeps one coherent
user/session/profile state across two backing stores:

- connected mode: Supabase auth + tables, with the local store as a cache
  mirror of the current session;
- fallback mode: the local store alone, acting as a self-contained system of
  record (users, credentials, profiles).

The mode is fixed when the manager is built and every call uses exactly one of
the two paths. Expected negative outcomes (wrong password, e-mail taken,
confirmation pending) come back as an AuthResult; transport failures and
backend rejections of non-auth operations are raised.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from src.adapters.backend_factory import Connected
from src.core.background import BackgroundTasks
from src.data.models import (
    AuthSession,
    OnboardingData,
    SubscriptionStatus,
    UserProfile,
    now_ms,
    utcnow,
)
from src.data.profile_codec import (
    DEFAULT_MATURITY,
    DEFAULT_NEXT_LEVEL_XP,
    profile_from_row,
    profile_update_row,
    registration_row,
)
from src.ports.backend_port import AuthBackendError, BackendError, NetworkError

if TYPE_CHECKING:
    from src.adapters.backend_factory import BackendState
    from src.data.local_store import LocalSessionStore
    from src.ports.backend_port import BackendPort

logger = logging.getLogger(__name__)

LOCAL_SESSION_TTL_MS = 7 * 24 * 60 * 60 * 1000
PENDING_SESSION_TTL_MS = 24 * 60 * 60 * 1000
DEFAULT_REMOTE_NAME = "Usuário"


# ---------------------------------------------------------------------------
# Expected outcomes
# ---------------------------------------------------------------------------


class AuthError(Exception):
    """Base class for expected authentication outcomes raised by unwrap()."""


class InvalidCredentials(AuthError):
    pass


class DuplicateEmail(AuthError):
    pass


class RegistrationPending(AuthError):
    pass


class AuthOutcome(Enum):
    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    DUPLICATE_EMAIL = "duplicate_email"
    REGISTRATION_PENDING = "registration_pending"


_OUTCOME_ERRORS: dict[AuthOutcome, type[AuthError]] = {
    AuthOutcome.INVALID_CREDENTIALS: InvalidCredentials,
    AuthOutcome.DUPLICATE_EMAIL: DuplicateEmail,
    AuthOutcome.REGISTRATION_PENDING: RegistrationPending,
}

# User-visible messages (pt-BR, like the rest of the product copy)
MSG_INVALID_CREDENTIALS = "E-mail ou senha incorretos."
MSG_DUPLICATE_EMAIL = "E-mail já cadastrado."
MSG_REGISTRATION_PENDING = "Cadastro ok! Verifique seu e-mail."
MSG_NETWORK = "Erro de conexão."


@dataclass
class AuthResult:
    outcome: AuthOutcome
    message: str = ""
    session: AuthSession | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is AuthOutcome.SUCCESS

    def unwrap(self) -> AuthSession:
        """Return the session or raise the exception matching the outcome."""
        if self.ok and self.session is not None:
            return self.session
        raise _OUTCOME_ERRORS.get(self.outcome, AuthError)(self.message)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_password(password: str | None) -> str:
    return (password or "").strip()


# ---------------------------------------------------------------------------
# SessionManager
# ---------------------------------------------------------------------------


class SessionManager:
    """login / register / logout / get_session / update_profile across both modes."""

    def __init__(
        self,
        backend: BackendState,
        store: LocalSessionStore,
        tasks: BackgroundTasks | None = None,
        password_reset_redirect: str = "",
    ) -> None:
        self._backend: BackendPort | None = (
            backend.backend if isinstance(backend, Connected) else None
        )
        self._store = store
        self._tasks = tasks or BackgroundTasks()
        self._reset_redirect = password_reset_redirect
        logger.info("SessionManager mode: %s", "connected" if self.connected else "fallback")

    @property
    def connected(self) -> bool:
        return self._backend is not None

    @property
    def backend(self) -> BackendPort | None:
        return self._backend

    @property
    def store(self) -> LocalSessionStore:
        return self._store

    @property
    def tasks(self) -> BackgroundTasks:
        return self._tasks

    # ------------------------------------------------------------------
    # login
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate and persist the session locally.

        Raises NetworkError when the backend cannot be reached.
        """
        email = normalize_email(email)
        password = normalize_password(password)

        if self._backend is not None:
            return await self._login_remote(self._backend, email, password)
        return self._login_local(email, password)

    async def _login_remote(
        self, backend: BackendPort, email: str, password: str
    ) -> AuthResult:
        try:
            auth = await backend.sign_in(email, password)
        except AuthBackendError as exc:
            logger.info("Remote login rejected for %s: %s", email, exc)
            return AuthResult(AuthOutcome.INVALID_CREDENTIALS, MSG_INVALID_CREDENTIALS)

        row = await self._fetch_profile_row(backend, auth.user_id)
        user = profile_from_row(row or {"id": auth.user_id, "name": DEFAULT_REMOTE_NAME}, email)
        session = AuthSession(
            user=user,
            token=auth.access_token or "",
            expires_at=(auth.expires_at * 1000) if auth.expires_at else now_ms() + PENDING_SESSION_TTL_MS,
        )
        self._store.save_session(session)
        logger.info("User %s logged in (connected)", user.id)
        return AuthResult(AuthOutcome.SUCCESS, session=session)

    async def _fetch_profile_row(self, backend: BackendPort, user_id: str) -> dict | None:
        try:
            return await backend.fetch_profile(user_id)
        except NetworkError:
            raise
        except BackendError as exc:
            logger.warning("Could not load profile for %s, using defaults: %s", user_id, exc)
            return None

    def _login_local(self, email: str, password: str) -> AuthResult:
        found = self._store.find_user(email)
        if found is None or found[1] != password:
            logger.info("Local login rejected for %s", email)
            return AuthResult(AuthOutcome.INVALID_CREDENTIALS, MSG_INVALID_CREDENTIALS)

        profile, _ = found
        session = AuthSession(
            user=profile,
            token=f"local-{now_ms()}",
            expires_at=now_ms() + LOCAL_SESSION_TTL_MS,
        )
        self._store.save_session(session)
        logger.info("User %s logged in (fallback)", profile.id)
        return AuthResult(AuthOutcome.SUCCESS, session=session)

    # ------------------------------------------------------------------
    # register
    # ------------------------------------------------------------------

    async def register(self, data: OnboardingData) -> AuthResult:
        """Create the account and its initial profile (level 1, 0 XP, trial).

        Raises NetworkError when the backend cannot be reached and
        AuthBackendError for rejections other than an existing e-mail.
        """
        email = normalize_email(data.email)
        password = normalize_password(data.password)

        if self._backend is not None:
            return await self._register_remote(self._backend, data, email, password)
        return self._register_local(data, email, password)

    async def _register_remote(
        self, backend: BackendPort, data: OnboardingData, email: str, password: str
    ) -> AuthResult:
        try:
            auth = await backend.sign_up(email, password)
        except AuthBackendError as exc:
            if exc.is_user_exists:
                return AuthResult(AuthOutcome.DUPLICATE_EMAIL, MSG_DUPLICATE_EMAIL)
            raise

        row = registration_row(auth.user_id, data, utcnow())
        try:
            await backend.insert_profile(row)
        except BackendError as exc:
            logger.warning("Profile row insert failed for %s: %s", auth.user_id, exc)

        if not auth.access_token:
            logger.info("Registration for %s awaits e-mail confirmation", auth.user_id)
            return AuthResult(AuthOutcome.REGISTRATION_PENDING, MSG_REGISTRATION_PENDING)

        session = AuthSession(
            user=profile_from_row(row, email),
            token=auth.access_token,
            expires_at=(auth.expires_at * 1000) if auth.expires_at else now_ms() + PENDING_SESSION_TTL_MS,
        )
        self._store.save_session(session)
        logger.info("User %s registered (connected)", auth.user_id)
        return AuthResult(AuthOutcome.SUCCESS, session=session)

    def _register_local(self, data: OnboardingData, email: str, password: str) -> AuthResult:
        if self._store.email_exists(email):
            return AuthResult(AuthOutcome.DUPLICATE_EMAIL, MSG_DUPLICATE_EMAIL)

        now = utcnow()
        profile = UserProfile(
            id=str(uuid.uuid4()),
            name=data.name.strip(),
            email=email,
            phone=data.phone,
            level=1,
            current_xp=0,
            next_level_xp=DEFAULT_NEXT_LEVEL_XP,
            streak_days=0,
            spiritual_maturity=DEFAULT_MATURITY,
            spiritual_focus=data.primary_struggle,
            spiritual_goal=data.spiritual_goal,
            state_of_life=data.state_of_life,
            patron_saint=data.patron_saint,
            confession_frequency=data.confession_frequency,
            joined_date=now,
            last_routine_update=now,
            is_premium=False,
            subscription_status=SubscriptionStatus.TRIAL,
        )
        self._store.add_user(profile, password)

        session = AuthSession(
            user=profile,
            token=f"local-{now_ms()}",
            expires_at=now_ms() + LOCAL_SESSION_TTL_MS,
        )
        self._store.save_session(session)
        logger.info("User %s registered (fallback)", profile.id)
        return AuthResult(AuthOutcome.SUCCESS, session=session)

    # ------------------------------------------------------------------
    # logout / session
    # ------------------------------------------------------------------

    async def logout(self) -> None:
        """Clear the local session first, then best-effort revoke the remote one."""
        self._store.clear_session()
        if self._backend is None:
            return
        try:
            await self._backend.sign_out()
        except Exception as exc:
            logger.warning("Remote sign-out failed (ignored): %s", exc)

    def get_session(self) -> AuthSession | None:
        """Return the stored session, or None if absent or unreadable.

        Expired sessions are returned as stored; callers decide.
        """
        return self._store.load_session()

    # ------------------------------------------------------------------
    # profile
    # ------------------------------------------------------------------

    def update_profile(self, profile: UserProfile) -> asyncio.Task | None:
        """Write the profile through to local storage now; sync remotely later.

        Returns the background task of the remote update (connected mode and
        a running event loop only) so callers may await it; its failure is
        logged, never raised.
        """
        if profile.current_xp < 0:
            profile = replace(profile, current_xp=0)
        session = self._store.load_session()
        if session is not None:
            if session.user.id != profile.id:
                logger.warning(
                    "Refusing to cache profile %s over session of %s", profile.id, session.user.id
                )
            else:
                profile = self._guard_invariants(session.user, profile)
                self._store.save_session(replace(session, user=profile))

        if self._backend is None:
            self._store.update_user_profile(profile)
            return None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running loop: remote profile update for %s skipped", profile.id)
            return None
        return self._tasks.spawn(
            self._push_profile(self._backend, profile), label=f"profile-sync:{profile.id}"
        )

    @staticmethod
    def _guard_invariants(current: UserProfile, incoming: UserProfile) -> UserProfile:
        """XP never negative; joined_date never moves forward."""
        joined = min(current.joined_date, incoming.joined_date)
        return replace(incoming, current_xp=max(0, incoming.current_xp), joined_date=joined)

    async def _push_profile(self, backend: BackendPort, profile: UserProfile) -> None:
        await backend.update_profile(profile.id, profile_update_row(profile))
        logger.debug("Profile %s synced to backend", profile.id)

    # ------------------------------------------------------------------
    # password
    # ------------------------------------------------------------------

    async def reset_password(self, email: str) -> bool:
        """Send a reset e-mail. Fallback mode has no credential authority: no-op."""
        if self._backend is None:
            logger.info("Password reset requested in fallback mode (no-op)")
            return True
        await self._backend.reset_password(normalize_email(email), self._reset_redirect)
        return True

    async def set_password(self, new_password: str) -> bool:
        """Change the signed-in user's password. No-op in fallback mode."""
        if self._backend is None:
            logger.info("Password change requested in fallback mode (no-op)")
            return True
        await self._backend.update_password(normalize_password(new_password))
        return True
