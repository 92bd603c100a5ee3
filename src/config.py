"""
Espiritualizei — Centralized configuration.

Loads all settings from .env and reports which capabilities are available.
Three independent secrets gate three independent capabilities (auth backend,
generative text, places lookup); a missing one only disables its own feature.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_ABSENT_MARKERS = {"", "undefined", "null", "none", "[object object]"}


def is_populated(value: str | None) -> bool:
    """True when a secret looks like a real value rather than a placeholder."""
    if not value:
        return False
    cleaned = str(value).strip()
    if cleaned.lower() in _ABSENT_MARKERS:
        return False
    return not cleaned.startswith("your-")


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Auth backend (Supabase): both required for connected mode
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""

    # LLM, provider-agnostic (gemini, anthropic, openai, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""

    # Google Maps Places API (optional, parish finder)
    GOOGLE_MAPS_API_KEY: str = ""

    # SQLite file backing the local session store
    DATABASE_PATH: str = "data/espiritualizei.db"

    # Where the password-reset e-mail link sends the user back to
    PASSWORD_RESET_REDIRECT_URL: str = "http://localhost:8080"

    @field_validator(
        "SUPABASE_URL", "SUPABASE_ANON_KEY", "LLM_API_KEY", "GOOGLE_MAPS_API_KEY",
        mode="before",
    )
    @classmethod
    def drop_placeholders(cls, v: str | None) -> str:
        return str(v).strip() if is_populated(v) else ""

    @property
    def backend_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY)

    @property
    def llm_configured(self) -> bool:
        return bool(self.LLM_API_KEY)

    @property
    def places_configured(self) -> bool:
        return bool(self.GOOGLE_MAPS_API_KEY)


def _getenv(*names: str, default: str = "") -> str:
    """Return the first populated variable among several accepted names."""
    for name in names:
        value = os.getenv(name)
        if is_populated(value):
            return value
    return default


def _load_settings() -> Settings:
    """Load settings from environment. Nothing is mandatory."""
    return Settings(
        SUPABASE_URL=_getenv("SUPABASE_URL", "VITE_SUPABASE_URL"),
        SUPABASE_ANON_KEY=_getenv("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"),
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=_getenv("LLM_API_KEY", "API_KEY", "VITE_API_KEY"),
        GOOGLE_MAPS_API_KEY=_getenv("GOOGLE_MAPS_API_KEY", "VITE_GOOGLE_MAPS_KEY"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/espiritualizei.db"),
        PASSWORD_RESET_REDIRECT_URL=os.getenv(
            "PASSWORD_RESET_REDIRECT_URL", "http://localhost:8080"
        ),
    )


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
