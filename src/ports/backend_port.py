"""Backend port — abstract interface for the remote auth and table service.

Core modules depend on this protocol, never on the Supabase SDK. Adapters
translate SDK failures into the errors below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class BackendError(Exception):
    """Raised when any backend operation fails."""


class NetworkError(BackendError):
    """The remote call could not complete (DNS, connection, timeout, 5xx)."""


class AuthBackendError(BackendError):
    """The auth service answered and rejected the request."""

    def __init__(self, message: str, code: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status

    @property
    def is_user_exists(self) -> bool:
        return self.code in ("user_already_exists", "email_exists") or (
            "already registered" in str(self).lower()
        )


@dataclass
class RemoteAuth:
    """Outcome of a successful sign-in or sign-up call.

    ``access_token``/``expires_at`` are None when the backend created the
    user but issued no session (e-mail confirmation pending).
    """

    user_id: str
    email: str
    access_token: str | None = None
    expires_at: int | None = None  # epoch seconds, as issued by the backend


class BackendPort(Protocol):
    """Abstract backend interface used by core modules."""

    # Auth
    async def sign_in(self, email: str, password: str) -> RemoteAuth: ...

    async def sign_up(self, email: str, password: str) -> RemoteAuth: ...

    async def sign_out(self) -> None: ...

    async def reset_password(self, email: str, redirect_to: str) -> None: ...

    async def update_password(self, new_password: str) -> None: ...

    # profiles
    async def fetch_profile(self, user_id: str) -> dict | None: ...

    async def insert_profile(self, row: dict) -> None: ...

    async def update_profile(self, user_id: str, row: dict) -> None: ...

    # routine_items
    async def fetch_routine(self, user_id: str) -> list[dict]: ...

    async def replace_routine(self, user_id: str, rows: list[dict]) -> None: ...

    async def insert_routine_item(self, row: dict) -> None: ...

    async def set_routine_item_completed(self, item_id: str, completed: bool) -> None: ...

    async def delete_routine_item(self, item_id: str) -> None: ...

    # prayer_intentions / prayer_interactions
    async def fetch_intentions(self, limit: int) -> list[dict]: ...

    async def fetch_prayed_ids(self, user_id: str) -> set[str]: ...

    async def insert_intention(self, row: dict) -> None: ...

    async def set_prayer_interaction(
        self, intention_id: str, user_id: str, praying: bool
    ) -> None: ...
