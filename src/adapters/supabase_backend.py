"""Supabase adapter — implements BackendPort for Supabase auth and tables.

The supabase client is synchronous; every call is wrapped with
asyncio.to_thread so the event loop is never blocked. SDK exceptions are
translated into NetworkError / AuthBackendError / BackendError here and
nowhere else.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import httpx
from supabase import AuthApiError, AuthRetryableError, Client

from src.ports.backend_port import (
    AuthBackendError,
    BackendError,
    NetworkError,
    RemoteAuth,
)

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
ROUTINE_TABLE = "routine_items"
INTENTIONS_TABLE = "prayer_intentions"
INTERACTIONS_TABLE = "prayer_interactions"


def _remote_auth(response: Any, email: str) -> RemoteAuth:
    user = getattr(response, "user", None)
    if user is None:
        raise AuthBackendError("No user returned by the auth service.")
    session = getattr(response, "session", None)
    return RemoteAuth(
        user_id=str(user.id),
        email=getattr(user, "email", None) or email,
        access_token=getattr(session, "access_token", None) if session else None,
        expires_at=getattr(session, "expires_at", None) if session else None,
    )


def _rows(response: Any) -> list[dict]:
    data = getattr(response, "data", None) if response is not None else None
    return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []


class SupabaseBackend:
    """Supabase implementation of BackendPort."""

    def __init__(self, client: Client) -> None:
        self._client = client

    async def _auth_call(self, action: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except AuthRetryableError as exc:
            logger.warning("Auth service unreachable (%s): %s", action, exc)
            raise NetworkError(f"Failed to {action}: {exc}") from exc
        except AuthApiError as exc:
            logger.info("Auth service rejected %s: %s", action, exc)
            raise AuthBackendError(
                str(exc),
                code=getattr(exc, "code", None),
                status=getattr(exc, "status", None),
            ) from exc
        except httpx.TransportError as exc:
            logger.warning("Auth service unreachable (%s): %s", action, exc)
            raise NetworkError(f"Failed to {action}: {exc}") from exc
        except Exception as exc:
            logger.error("Supabase auth error (%s): %s", action, exc)
            raise AuthBackendError(f"Failed to {action}: {exc}") from exc

    async def _table_call(self, action: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except httpx.TransportError as exc:
            logger.warning("Supabase unreachable (%s): %s", action, exc)
            raise NetworkError(f"Failed to {action}: {exc}") from exc
        except Exception as exc:
            logger.error("Supabase table error (%s): %s", action, exc)
            raise BackendError(f"Failed to {action}: {exc}") from exc

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> RemoteAuth:
        response = await self._auth_call(
            "sign in",
            lambda: self._client.auth.sign_in_with_password(
                {"email": email, "password": password}
            ),
        )
        auth = _remote_auth(response, email)
        logger.info("Supabase sign-in ok for user %s", auth.user_id)
        return auth

    async def sign_up(self, email: str, password: str) -> RemoteAuth:
        response = await self._auth_call(
            "sign up",
            lambda: self._client.auth.sign_up({"email": email, "password": password}),
        )
        auth = _remote_auth(response, email)
        logger.info(
            "Supabase sign-up ok for user %s (session issued: %s)",
            auth.user_id, auth.access_token is not None,
        )
        return auth

    async def sign_out(self) -> None:
        await self._auth_call("sign out", self._client.auth.sign_out)

    async def reset_password(self, email: str, redirect_to: str) -> None:
        await self._auth_call(
            "send password reset",
            lambda: self._client.auth.reset_password_for_email(
                email, {"redirect_to": redirect_to}
            ),
        )

    async def update_password(self, new_password: str) -> None:
        await self._auth_call(
            "update password",
            lambda: self._client.auth.update_user({"password": new_password}),
        )

    # ------------------------------------------------------------------
    # profiles
    # ------------------------------------------------------------------

    async def fetch_profile(self, user_id: str) -> dict | None:
        response = await self._table_call(
            "fetch profile",
            lambda: self._client.table(PROFILES_TABLE)
            .select("*")
            .eq("id", user_id)
            .limit(1)
            .execute(),
        )
        rows = _rows(response)
        return rows[0] if rows else None

    async def insert_profile(self, row: dict) -> None:
        await self._table_call(
            "insert profile",
            lambda: self._client.table(PROFILES_TABLE).insert([row]).execute(),
        )

    async def update_profile(self, user_id: str, row: dict) -> None:
        await self._table_call(
            "update profile",
            lambda: self._client.table(PROFILES_TABLE).update(row).eq("id", user_id).execute(),
        )

    # ------------------------------------------------------------------
    # routine_items
    # ------------------------------------------------------------------

    async def fetch_routine(self, user_id: str) -> list[dict]:
        response = await self._table_call(
            "fetch routine",
            lambda: self._client.table(ROUTINE_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .execute(),
        )
        return _rows(response)

    async def replace_routine(self, user_id: str, rows: list[dict]) -> None:
        def _replace() -> None:
            self._client.table(ROUTINE_TABLE).delete().eq("user_id", user_id).execute()
            if rows:
                self._client.table(ROUTINE_TABLE).insert(rows).execute()

        await self._table_call("save routine", _replace)
        logger.info("Routine saved for user %s (%d items)", user_id, len(rows))

    async def insert_routine_item(self, row: dict) -> None:
        await self._table_call(
            "add routine item",
            lambda: self._client.table(ROUTINE_TABLE).insert([row]).execute(),
        )

    async def set_routine_item_completed(self, item_id: str, completed: bool) -> None:
        await self._table_call(
            "update routine item",
            lambda: self._client.table(ROUTINE_TABLE)
            .update({"completed": completed})
            .eq("id", item_id)
            .execute(),
        )

    async def delete_routine_item(self, item_id: str) -> None:
        await self._table_call(
            "delete routine item",
            lambda: self._client.table(ROUTINE_TABLE).delete().eq("id", item_id).execute(),
        )

    # ------------------------------------------------------------------
    # prayer_intentions / prayer_interactions
    # ------------------------------------------------------------------

    async def fetch_intentions(self, limit: int) -> list[dict]:
        response = await self._table_call(
            "fetch intentions",
            lambda: self._client.table(INTENTIONS_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute(),
        )
        return _rows(response)

    async def fetch_prayed_ids(self, user_id: str) -> set[str]:
        response = await self._table_call(
            "fetch prayer interactions",
            lambda: self._client.table(INTERACTIONS_TABLE)
            .select("intention_id")
            .eq("user_id", user_id)
            .execute(),
        )
        return {str(r["intention_id"]) for r in _rows(response) if r.get("intention_id")}

    async def insert_intention(self, row: dict) -> None:
        await self._table_call(
            "create intention",
            lambda: self._client.table(INTENTIONS_TABLE).insert([row]).execute(),
        )

    async def set_prayer_interaction(
        self, intention_id: str, user_id: str, praying: bool
    ) -> None:
        def _apply() -> None:
            table = self._client.table(INTERACTIONS_TABLE)
            if praying:
                table.upsert(
                    {"intention_id": intention_id, "user_id": user_id},
                    on_conflict="intention_id,user_id",
                ).execute()
            else:
                table.delete().eq("intention_id", intention_id).eq("user_id", user_id).execute()

        await self._table_call("toggle prayer", _apply)
