"""Shared test fixtures and configuration.

Sets up fake environment variables before src.config is imported so the
settings singleton starts in fallback mode, and provides common fixtures
like a temp store and sample profiles.
"""

import os

# Patch env vars BEFORE any src imports
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_ANON_KEY"] = ""
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ["GOOGLE_MAPS_API_KEY"] = ""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_espiritualizei.db")


@pytest.fixture
def store(tmp_db_path):
    """Return a LocalSessionStore backed by a temp file."""
    from src.data.local_store import LocalSessionStore
    return LocalSessionStore(db_path=tmp_db_path)


@pytest.fixture
def tasks():
    from src.core.background import BackgroundTasks
    return BackgroundTasks()


@pytest.fixture
def fallback_sessions(store, tasks):
    """SessionManager running against the local store only."""
    from src.adapters.backend_factory import Uninitialized
    from src.core.session_manager import SessionManager
    return SessionManager(Uninitialized("tests"), store, tasks)


@pytest.fixture
def mock_backend():
    """An AsyncMock standing in for a connected BackendPort."""
    from src.ports.backend_port import BackendPort
    return AsyncMock(spec=BackendPort)


@pytest.fixture
def connected_sessions(mock_backend, store, tasks):
    from src.adapters.backend_factory import Connected
    from src.core.session_manager import SessionManager
    return SessionManager(Connected(mock_backend), store, tasks, password_reset_redirect="http://app")


@pytest.fixture
def onboarding():
    from src.data.models import OnboardingData
    return OnboardingData(
        name="Maria",
        email="Maria@Example.com ",
        password=" 1234 ",
        phone="+55 11 99999-0000",
        state_of_life="married",
        primary_struggle="anxiety",
        spiritual_goal="rezar mais",
        patron_saint="therese",
        confession_frequency="monthly",
    )


@pytest.fixture
def profile():
    from src.data.models import UserProfile
    joined = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)
    return UserProfile(
        id="user-1",
        name="Maria",
        email="maria@example.com",
        joined_date=joined,
        last_routine_update=joined,
        current_xp=50,
    )


@pytest.fixture
def routine_items():
    from src.data.models import RoutineIcon, RoutineItem, TimeOfDay
    return [
        RoutineItem(id="r1", title="Terço", description="Um mistério", xp_reward=30,
                    icon=RoutineIcon.ROSARY, time_of_day=TimeOfDay.NIGHT),
        RoutineItem(id="r2", title="Evangelho", description="Leitura do dia", xp_reward=20),
    ]
