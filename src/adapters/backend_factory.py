"""Backend factory — builds the backend client once at process start.

The result is an explicit two-variant value: ``Connected`` wraps a ready
BackendPort, ``Uninitialized`` records why there is none. Consumers branch on
the variant instead of testing a nullable global.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from src.config import Settings
    from src.ports.backend_port import BackendPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connected:
    backend: BackendPort


@dataclass(frozen=True)
class Uninitialized:
    reason: str


BackendState = Union[Connected, Uninitialized]


def create_backend(config: Settings | None = None) -> BackendState:
    """Return ``Connected`` when both Supabase secrets are set and the client builds."""
    if config is None:
        from src.config import settings as config

    if not config.backend_configured:
        logger.warning(
            "Backend offline: SUPABASE_URL / SUPABASE_ANON_KEY not set, using local fallback store"
        )
        return Uninitialized("missing Supabase configuration")

    from supabase import create_client

    from src.adapters.supabase_backend import SupabaseBackend

    try:
        client = create_client(config.SUPABASE_URL, config.SUPABASE_ANON_KEY)
    except Exception as exc:
        logger.error("Failed to initialize Supabase client: %s", exc)
        return Uninitialized(f"client initialization failed: {exc}")

    logger.info("Backend connected: %s", config.SUPABASE_URL)
    return Connected(SupabaseBackend(client))
