"""Pytest configuration and fixtures for EBURON tests.

Test isolation strategy:
- Unit tests use FakeRowStore / FakeBlobStore (no Supabase needed)
- Gateway-dependent services get a ScriptedGateway
- HTTP clients are exercised against respx mocks, never the network
"""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest

from eburon.config import Settings, clear_settings_cache
from eburon.db.client import FakeRowStore
from eburon.services.media import MediaConsistencyManager
from eburon.services.session import SessionStateManager
from eburon.storage.client import FakeBlobStore
from tests.helpers import ScriptedGateway, make_settings


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch) -> Generator[None, None, None]:
    """Keep EBURON_ENV at "test" so safe_kv raises on violations."""
    monkeypatch.setenv("EBURON_ENV", "test")
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def rows() -> FakeRowStore:
    return FakeRowStore()


@pytest.fixture
def blobs() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def session_manager(gateway, rows) -> SessionStateManager:
    return SessionStateManager(gateway, rows, model_name="gemini-2.5-flash")


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def clock() -> StepClock:
    return StepClock(datetime(2025, 3, 4, 5, 6, 7, 890000, tzinfo=timezone.utc))


@pytest.fixture
def media_manager(rows, blobs, clock) -> MediaConsistencyManager:
    return MediaConsistencyManager(rows, blobs, clock=clock)
