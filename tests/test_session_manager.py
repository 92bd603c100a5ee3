"""Tests for src.core.session_manager — login/register/logout in both modes."""

import pytest
from dataclasses import replace
from datetime import timedelta

from src.core.session_manager import (
    AuthOutcome,
    AuthResult,
    DuplicateEmail,
    InvalidCredentials,
    MSG_INVALID_CREDENTIALS,
    RegistrationPending,
    normalize_email,
)
from src.data.local_store import USERS_KEY
from src.data.models import AuthSession, OnboardingData, SubscriptionStatus, now_ms
from src.ports.backend_port import AuthBackendError, BackendError, NetworkError, RemoteAuth


def _data(email="a@a.com", password="1234", name="Ana"):
    return OnboardingData(name=name, email=email, password=password)


class TestAuthResult:
    def test_unwrap_success(self, profile):
        session = AuthSession(user=profile, token="t", expires_at=1)
        assert AuthResult(AuthOutcome.SUCCESS, session=session).unwrap() is session

    @pytest.mark.parametrize("outcome, error", [
        (AuthOutcome.INVALID_CREDENTIALS, InvalidCredentials),
        (AuthOutcome.DUPLICATE_EMAIL, DuplicateEmail),
        (AuthOutcome.REGISTRATION_PENDING, RegistrationPending),
    ])
    def test_unwrap_raises_matching_error(self, outcome, error):
        with pytest.raises(error):
            AuthResult(outcome, "msg").unwrap()

    def test_normalize_email(self):
        assert normalize_email("  Ana@Example.COM ") == "ana@example.com"


# ---------------------------------------------------------------------------
# Fallback mode
# ---------------------------------------------------------------------------


class TestFallbackRegister:
    @pytest.mark.asyncio
    async def test_register_then_session_is_fresh_profile(self, fallback_sessions):
        result = await fallback_sessions.register(_data())
        assert result.ok

        session = fallback_sessions.get_session()
        assert session is not None
        assert session.user.email == "a@a.com"
        assert session.user.level == 1
        assert session.user.current_xp == 0
        assert session.user.subscription_status is SubscriptionStatus.TRIAL
        assert session.token.startswith("local-")
        assert not session.is_expired()

    @pytest.mark.asyncio
    async def test_register_normalizes_email(self, fallback_sessions, onboarding):
        result = await fallback_sessions.register(onboarding)
        assert result.session.user.email == "maria@example.com"
        assert fallback_sessions.store.email_exists("maria@example.com")

    @pytest.mark.asyncio
    async def test_duplicate_email(self, fallback_sessions):
        await fallback_sessions.register(_data())
        result = await fallback_sessions.register(_data(email=" A@A.com", name="Outra"))
        assert result.outcome is AuthOutcome.DUPLICATE_EMAIL
        assert result.session is None


class TestFallbackLogin:
    @pytest.mark.asyncio
    async def test_login_with_trimmed_password(self, fallback_sessions):
        await fallback_sessions.register(_data())
        fallback_sessions.store.clear_session()

        result = await fallback_sessions.login("A@A.COM", " 1234 ")
        assert result.ok
        assert fallback_sessions.get_session().user.email == "a@a.com"

    @pytest.mark.asyncio
    async def test_wrong_password_is_invalid_credentials(self, fallback_sessions):
        await fallback_sessions.register(_data())
        fallback_sessions.store.clear_session()

        result = await fallback_sessions.login("a@a.com", "9999")
        assert result.outcome is AuthOutcome.INVALID_CREDENTIALS
        assert result.message == MSG_INVALID_CREDENTIALS
        assert fallback_sessions.get_session() is None
        with pytest.raises(InvalidCredentials):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_unknown_user(self, fallback_sessions):
        result = await fallback_sessions.login("ghost@a.com", "1234")
        assert result.outcome is AuthOutcome.INVALID_CREDENTIALS


class TestFallbackSessionAndProfile:
    @pytest.mark.asyncio
    async def test_logout_clears_session(self, fallback_sessions):
        await fallback_sessions.register(_data())
        await fallback_sessions.logout()
        assert fallback_sessions.get_session() is None

    @pytest.mark.asyncio
    async def test_update_profile_writes_session_and_user_table(self, fallback_sessions):
        result = await fallback_sessions.register(_data())
        user = result.session.user

        task = fallback_sessions.update_profile(replace(user, current_xp=40, name="Ana Paula"))
        assert task is None
        assert fallback_sessions.get_session().user.current_xp == 40

        fallback_sessions.store.clear_session()
        relogin = await fallback_sessions.login("a@a.com", "1234")
        assert relogin.session.user.name == "Ana Paula"
        assert relogin.session.user.current_xp == 40

    @pytest.mark.asyncio
    async def test_update_profile_guards_xp_and_joined_date(self, fallback_sessions):
        result = await fallback_sessions.register(_data())
        user = result.session.user
        later = user.joined_date + timedelta(days=30)

        fallback_sessions.update_profile(replace(user, current_xp=-5, joined_date=later))
        stored = fallback_sessions.get_session().user
        assert stored.current_xp == 0
        assert stored.joined_date == user.joined_date

    @pytest.mark.asyncio
    async def test_update_profile_of_other_user_leaves_session(self, fallback_sessions, profile):
        result = await fallback_sessions.register(_data())
        fallback_sessions.update_profile(profile)
        assert fallback_sessions.get_session().user.id == result.session.user.id

    @pytest.mark.asyncio
    async def test_update_profile_clamps_xp_without_cached_session(self, fallback_sessions, profile):
        fallback_sessions.store.add_user(profile, "1234")
        assert fallback_sessions.get_session() is None

        fallback_sessions.update_profile(replace(profile, current_xp=-20))
        assert fallback_sessions.store.get(USERS_KEY)[0]["currentXP"] == 0

    @pytest.mark.asyncio
    async def test_password_operations_are_noops(self, fallback_sessions):
        assert await fallback_sessions.reset_password("a@a.com") is True
        assert await fallback_sessions.set_password("new") is True


# ---------------------------------------------------------------------------
# Connected mode
# ---------------------------------------------------------------------------


def _remote(token="tok", expires_at=2_000_000_000):
    return RemoteAuth(user_id="remote-1", email="a@a.com", access_token=token, expires_at=expires_at)


class TestConnectedLogin:
    @pytest.mark.asyncio
    async def test_login_decodes_profile_row(self, connected_sessions, mock_backend):
        mock_backend.sign_in.return_value = _remote()
        mock_backend.fetch_profile.return_value = {
            "id": "remote-1", "name": "Ana", "current_xp": 70, "level": 2,
            "subscription_status": "active", "joined_date": "2025-01-01T00:00:00Z",
        }

        result = await connected_sessions.login(" A@a.com ", "1234 ")
        assert result.ok
        mock_backend.sign_in.assert_awaited_once_with("a@a.com", "1234")

        session = connected_sessions.get_session()
        assert session.user.id == "remote-1"
        assert session.user.current_xp == 70
        assert session.user.subscription_status is SubscriptionStatus.ACTIVE
        assert session.expires_at == 2_000_000_000 * 1000
        assert session.token == "tok"

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, connected_sessions, mock_backend):
        mock_backend.sign_in.side_effect = AuthBackendError("Invalid login credentials", code="invalid_credentials")
        result = await connected_sessions.login("a@a.com", "bad")
        assert result.outcome is AuthOutcome.INVALID_CREDENTIALS
        assert connected_sessions.get_session() is None

    @pytest.mark.asyncio
    async def test_network_error_propagates(self, connected_sessions, mock_backend):
        mock_backend.sign_in.side_effect = NetworkError("timeout")
        with pytest.raises(NetworkError):
            await connected_sessions.login("a@a.com", "1234")

    @pytest.mark.asyncio
    async def test_missing_profile_row_uses_defaults(self, connected_sessions, mock_backend):
        mock_backend.sign_in.return_value = _remote()
        mock_backend.fetch_profile.side_effect = BackendError("permission denied")

        result = await connected_sessions.login("a@a.com", "1234")
        assert result.ok
        assert result.session.user.level == 1
        assert result.session.user.current_xp == 0


class TestConnectedRegister:
    @pytest.mark.asyncio
    async def test_register_inserts_profile_and_saves_session(self, connected_sessions, mock_backend, onboarding):
        mock_backend.sign_up.return_value = _remote()

        result = await connected_sessions.register(onboarding)
        assert result.ok
        row = mock_backend.insert_profile.await_args.args[0]
        assert row["id"] == "remote-1"
        assert row["level"] == 1
        assert row["current_xp"] == 0
        assert connected_sessions.get_session().user.patron_saint == "therese"

    @pytest.mark.asyncio
    async def test_existing_email_is_duplicate(self, connected_sessions, mock_backend):
        mock_backend.sign_up.side_effect = AuthBackendError("User already registered")
        result = await connected_sessions.register(_data())
        assert result.outcome is AuthOutcome.DUPLICATE_EMAIL

    @pytest.mark.asyncio
    async def test_other_rejection_is_raised(self, connected_sessions, mock_backend):
        mock_backend.sign_up.side_effect = AuthBackendError("Password should be at least 6 characters", code="weak_password")
        with pytest.raises(AuthBackendError):
            await connected_sessions.register(_data())

    @pytest.mark.asyncio
    async def test_pending_confirmation_saves_no_session(self, connected_sessions, mock_backend):
        mock_backend.sign_up.return_value = _remote(token=None, expires_at=None)
        result = await connected_sessions.register(_data())
        assert result.outcome is AuthOutcome.REGISTRATION_PENDING
        assert connected_sessions.get_session() is None

    @pytest.mark.asyncio
    async def test_profile_insert_failure_is_not_fatal(self, connected_sessions, mock_backend):
        mock_backend.sign_up.return_value = _remote()
        mock_backend.insert_profile.side_effect = BackendError("rls")
        result = await connected_sessions.register(_data())
        assert result.ok


class TestConnectedSession:
    @pytest.mark.asyncio
    async def test_logout_clears_session_even_if_remote_fails(self, connected_sessions, mock_backend, profile):
        connected_sessions.store.save_session(AuthSession(user=profile, token="t", expires_at=now_ms() + 1000))
        mock_backend.sign_out.side_effect = NetworkError("offline")

        await connected_sessions.logout()
        assert connected_sessions.get_session() is None

    @pytest.mark.asyncio
    async def test_update_profile_syncs_in_background(self, connected_sessions, mock_backend, profile):
        connected_sessions.store.save_session(AuthSession(user=profile, token="t", expires_at=now_ms() + 1000))

        task = connected_sessions.update_profile(replace(profile, current_xp=80))
        assert task is not None
        assert connected_sessions.get_session().user.current_xp == 80
        await connected_sessions.tasks.drain()

        user_id, row = mock_backend.update_profile.await_args.args
        assert user_id == "user-1"
        assert row["current_xp"] == 80

    @pytest.mark.asyncio
    async def test_background_sync_failure_is_recorded(self, connected_sessions, mock_backend, profile):
        connected_sessions.store.save_session(AuthSession(user=profile, token="t", expires_at=now_ms() + 1000))
        mock_backend.update_profile.side_effect = BackendError("boom")

        connected_sessions.update_profile(replace(profile, current_xp=80))
        await connected_sessions.tasks.drain()

        assert connected_sessions.tasks.failures == 1
        assert connected_sessions.get_session().user.current_xp == 80

    @pytest.mark.asyncio
    async def test_reset_password_uses_redirect(self, connected_sessions, mock_backend):
        assert await connected_sessions.reset_password(" A@a.com") is True
        mock_backend.reset_password.assert_awaited_once_with("a@a.com", "http://app")
