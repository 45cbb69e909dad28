"""
Pytest configuration and shared fixtures for the Pumpkin Patch test suite.

This file provides:
- A frozen, manually advanced clock
- An in-memory store so service and API tests run without PostgreSQL
- API test client fixture with dependency overrides
- PostgreSQL store fixture for integration tests (skipped without a database)
"""

import os
import sys
import random
import threading
import pytest
import psycopg2
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.errors import PlayerAlreadyExists, PlayerNotFound
from app.core.locks import PlayerLocks
from app.models.schemas import (
    ChallengeType,
    FarmState,
    Player,
    ResourceBundle,
    SeasonalChallenge,
)
from app.services.game_service import GameService

START_TIME = datetime(2024, 10, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# TIME
# =============================================================================

class FakeClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: datetime = START_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def now():
    return START_TIME


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryStore:
    """
    Store double with the same unit-of-work contract as Database.

    State is deep-copied in and out, and only written back when the
    ``locked_player`` block exits without an exception.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._states: Dict[str, FarmState] = {}

    def player_exists(self, player_id: str) -> bool:
        with self._guard:
            return player_id in self._states

    def create_player(self, state: FarmState) -> None:
        with self._guard:
            if state.player.id in self._states:
                raise PlayerAlreadyExists(state.player.id)
            self._states[state.player.id] = state.model_copy(deep=True)

    @contextmanager
    def locked_player(self, player_id: str):
        with self._guard:
            saved = self._states.get(player_id)
        if saved is None:
            raise PlayerNotFound(player_id)

        state = saved.model_copy(deep=True)
        yield state

        with self._guard:
            self._states[player_id] = state.model_copy(deep=True)

    def snapshot(self, player_id: str) -> FarmState:
        with self._guard:
            return self._states[player_id].model_copy(deep=True)

    def ping(self) -> bool:
        return True


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def service(store, clock):
    return GameService(store, clock=clock, rng=random.Random(7), locks=PlayerLocks())


@pytest.fixture
def player_id(service):
    """A freshly created farm with the starting inventory."""
    service.create_player("farmer")
    return "farmer"


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def make_player(now):
    """Factory for detached Player models used by the engine tests."""

    def _make(**overrides) -> Player:
        data = {
            "id": "tester",
            "coins": 150,
            "seeds": 25,
            "pumpkins": 8,
            "last_updated": now,
            "created_at": now,
        }
        data.update(overrides)
        return Player(**data)

    return _make


@pytest.fixture
def make_challenge(now):
    """Factory for a harvest challenge worth 80 coins and 2 fertilizer."""

    def _make(challenge_type=ChallengeType.HARVEST, target=3, **overrides) -> SeasonalChallenge:
        data = {
            "id": "harvest_crops-abc",
            "player_id": "tester",
            "template": "harvest_crops",
            "title": "Harvest Moon",
            "description": f"Harvest {target} crops",
            "season": "autumn",
            "type": challenge_type,
            "target_value": target,
            "rewards": ResourceBundle(coins=80, fertilizer=2),
            "difficulty": 2,
            "created_at": now,
            "expires_at": now + timedelta(hours=24),
        }
        data.update(overrides)
        return SeasonalChallenge(**data)

    return _make


@pytest.fixture
def rng():
    return random.Random(42)


# =============================================================================
# API TEST CLIENT
# =============================================================================

@pytest.fixture
def test_client(store, clock):
    """Create FastAPI TestClient wired to the in-memory store and fake clock."""
    from fastapi.testclient import TestClient
    from main import app
    from app.api.game import get_clock
    from app.db.database import get_database

    app.dependency_overrides[get_database] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock

    # Without a context manager so startup (migrations, seeding) does not run
    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


# =============================================================================
# POSTGRESQL
# =============================================================================

@pytest.fixture(scope="session")
def pg_database():
    """
    Database store against the test database, with migrations applied.

    Skips the requesting test when PostgreSQL is not reachable.
    """
    from app.core.config import settings
    from app.db.database import Database
    from migrations.run_migrations import run_all_migrations

    database = Database(settings.test_database_url, minconn=1, maxconn=4)
    try:
        database.ping()
    except psycopg2.OperationalError as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    run_all_migrations(settings.test_database_url)
    yield database
    database.close()


@pytest.fixture
def clean_pg_database(pg_database):
    """Empty every farm table before the test."""
    with pg_database._get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("TRUNCATE TABLE players CASCADE")
    return pg_database
