"""
BirthGuide - Test Configuration and Fixtures

Shared fixtures for all test modules.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient

# Ensure backend package is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from birthguide.config import Settings
from birthguide.core.engine import LaborSessionEngine
from birthguide.core.exceptions import PersistenceError
from birthguide.core.state_store import InMemoryLaborStateStore
from birthguide.core.types import (
    DecisionId,
    DecisionRecord,
    EmergencyType,
    LaborStage,
    LaborState,
    SessionId,
)


SESSION_KEY = "labor_state"
START_TIME = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that exercise the HTTP adapter")


# =============================================================================
# Test Doubles
# =============================================================================

class FakeClock:
    """Controllable time source for the engine."""

    def __init__(self, start: datetime = START_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now = self.now + timedelta(minutes=minutes)


class FlakyStore(InMemoryLaborStateStore):
    """In-memory store whose writes can be made to fail."""

    def __init__(self):
        super().__init__()
        self.fail_saves = False
        self.save_calls = 0

    async def save(self, key: str, state: LaborState) -> None:
        self.save_calls += 1
        if self.fail_saves:
            raise PersistenceError("disk full")
        await super().save(key, state)


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Test settings: in-memory state, strict answers."""
    return Settings(
        app_env="testing",
        app_debug=True,
        app_log_level="WARNING",  # Reduce noise in tests
        state_backend="memory",
        session_key=SESSION_KEY,
        retained_placenta_minutes=60,
        strict_answers=True,
    )


# =============================================================================
# Engine Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryLaborStateStore:
    """Create a fresh in-memory state store."""
    return InMemoryLaborStateStore()


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def engine(store: InMemoryLaborStateStore, clock: FakeClock) -> LaborSessionEngine:
    """Engine with strict answers over the in-memory store."""
    return LaborSessionEngine(store=store, session_key=SESSION_KEY, clock=clock)


@pytest.fixture
def permissive_engine(store: InMemoryLaborStateStore, clock: FakeClock) -> LaborSessionEngine:
    """Engine that records unknown answers instead of rejecting them."""
    return LaborSessionEngine(
        store=store, session_key=SESSION_KEY, strict_answers=False, clock=clock
    )


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def make_state(clock: FakeClock) -> Callable[..., LaborState]:
    """
    Factory for a LaborState in any stage, for seeding a store directly.

    ``birth_minutes_ago`` sets birth_timestamp relative to the fake clock.
    """

    def _make(
        stage: LaborStage = LaborStage.ACTIVE,
        birth_minutes_ago: Optional[float] = None,
        decisions: Optional[list] = None,
        emergency_type: Optional[EmergencyType] = None,
    ) -> LaborState:
        now = clock()
        return LaborState(
            session_id=SessionId("session_seeded0000"),
            stage=stage,
            months_pregnant=9,
            contraction_minutes=4,
            water_broken=True,
            urge_to_push=False,
            labor_start_timestamp=now - timedelta(hours=3),
            last_updated=now,
            decisions_made=[
                DecisionRecord(decision_id=DecisionId(d), response=r)
                for d, r in (decisions or [])
            ],
            emergency_active=emergency_type is not None,
            emergency_type=emergency_type,
            birth_timestamp=(
                now - timedelta(minutes=birth_minutes_ago)
                if birth_minutes_ago is not None else None
            ),
        )

    return _make


# =============================================================================
# FastAPI App Fixture
# =============================================================================

@pytest.fixture
def app(test_settings: Settings):
    """Create a FastAPI app instance over an in-memory store."""
    # Import here so collection does not configure logging
    from main import create_app

    return create_app(test_settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app (runs the lifespan)."""
    with TestClient(app) as c:
        yield c
