"""
PostgreSQL Store Tests.

Tests the Database unit of work against a real test database:
- Player creation with children
- Round trip of every child table (plots, ovens, orders, challenges)
- Rollback on exception
- Row lock serializing concurrent transactions

Skipped when PostgreSQL is not reachable.
"""
import pytest
import random
import threading

from app.config.game_constants import MAX_PENDING_ORDERS, ORDER_HISTORY_LIMIT
from app.core.config import settings
from app.core.errors import PlayerAlreadyExists, PlayerNotFound, PlotNotEmpty
from app.core.locks import PlayerLocks
from app.models.schemas import ChallengeStatus, MarketItem, OrderStatus, PlotState
from app.services.game_service import GameService
from migrations.migration_tracker import MigrationLedger
from migrations.run_migrations import run_all_migrations


@pytest.fixture
def pg_service(clean_pg_database, clock):
    return GameService(clean_pg_database, clock=clock, rng=random.Random(1), locks=PlayerLocks())


@pytest.mark.integration
class TestPlayerPersistence:
    """Test creating and loading players."""

    def test_create_and_load(self, pg_service, clean_pg_database):
        """A created farm loads back with its plots and oven."""
        pg_service.create_player("pg-farmer")

        with clean_pg_database.locked_player("pg-farmer") as state:
            assert state.player.coins == 150
            assert len(state.plots) == 9
            assert len(state.ovens) == 1
            assert state.orders == []

    def test_create_duplicate(self, pg_service):
        pg_service.create_player("pg-farmer")

        with pytest.raises(PlayerAlreadyExists):
            pg_service.create_player("pg-farmer")

    def test_player_exists(self, pg_service, clean_pg_database):
        assert clean_pg_database.player_exists("pg-farmer") is False
        pg_service.create_player("pg-farmer")
        assert clean_pg_database.player_exists("pg-farmer") is True

    def test_missing_player(self, clean_pg_database):
        with pytest.raises(PlayerNotFound):
            with clean_pg_database.locked_player("ghost"):
                pass

    def test_ping(self, clean_pg_database):
        assert clean_pg_database.ping() is True


@pytest.mark.integration
class TestUnitOfWork:
    """Test that state is saved on success and discarded on failure."""

    def test_plant_persists(self, pg_service, clean_pg_database, clock):
        pg_service.create_player("pg-farmer")
        pg_service.plant("pg-farmer", 0, 1)

        with clean_pg_database.locked_player("pg-farmer") as state:
            plot = state.get_plot(0, 1)
            assert plot.state == PlotState.SEEDLING
            assert plot.planted_at == clock()
            assert state.player.seeds == 24

    def test_failure_rolls_back(self, pg_service, clean_pg_database):
        pg_service.create_player("pg-farmer")
        pg_service.plant("pg-farmer", 0, 0)

        with pytest.raises(PlotNotEmpty):
            pg_service.plant("pg-farmer", 0, 0)

        with clean_pg_database.locked_player("pg-farmer") as state:
            assert state.player.seeds == 24
            assert state.player.experience == 5

    def test_exception_inside_block_discards_changes(self, pg_service, clean_pg_database):
        pg_service.create_player("pg-farmer")

        with pytest.raises(RuntimeError):
            with clean_pg_database.locked_player("pg-farmer") as state:
                state.player.coins = 0
                raise RuntimeError("boom")

        with clean_pg_database.locked_player("pg-farmer") as state:
            assert state.player.coins == 150

    def test_orders_and_challenges_round_trip(self, pg_service, clean_pg_database, clock):
        pg_service.create_player("pg-farmer")
        orders = pg_service.get_orders("pg-farmer")
        challenges = pg_service.get_challenges("pg-farmer")

        clock.advance(hours=4)
        pg_service.get_player("pg-farmer")

        with clean_pg_database.locked_player("pg-farmer") as state:
            assert {o.id for o in state.orders} == {o.id for o in orders}
            assert all(o.status == OrderStatus.EXPIRED for o in state.orders)
            assert {c.id for c in state.challenges} == {c.id for c in challenges}
            loaded = state.get_order(orders[0].id)
            assert loaded.required_items == orders[0].required_items
            assert loaded.rewards == orders[0].rewards

    def test_regenerated_challenges_replace_open_ones(self, pg_service, clean_pg_database):
        pg_service.create_player("pg-farmer")
        first = {c.id for c in pg_service.get_challenges("pg-farmer")}

        pg_service.generate_challenges("pg-farmer")

        with clean_pg_database.locked_player("pg-farmer") as state:
            stored = {c.id for c in state.challenges}
            assert stored.isdisjoint(first)
            assert all(c.status != ChallengeStatus.COMPLETED for c in state.challenges)
            assert len(stored) == 3


@pytest.mark.integration
class TestRowLock:
    """Test cross-service serialization through SELECT ... FOR UPDATE."""

    def test_separate_services_do_not_lose_updates(self, clean_pg_database, clock):
        """Two services with independent in-process locks still serialize."""
        GameService(clean_pg_database, clock=clock).create_player("pg-farmer")
        services = [
            GameService(clean_pg_database, clock=clock, locks=PlayerLocks())
            for _ in range(2)
        ]
        errors = []

        def buy(service):
            try:
                for _ in range(3):
                    service.buy("pg-farmer", MarketItem.SEEDS, 1)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=buy, args=(s,)) for s in services]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        with clean_pg_database.locked_player("pg-farmer") as state:
            assert state.player.coins == 90
            assert state.player.seeds == 31


@pytest.mark.integration
class TestHistoryPruning:
    """Test that trimmed history is deleted from the tables."""

    def test_pruned_orders_are_deleted(self, pg_service, clean_pg_database, clock):
        pg_service.create_player("pg-farmer")
        for _ in range(8):
            pg_service.get_orders("pg-farmer")
            clock.advance(hours=4)

        with clean_pg_database._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COUNT(*) AS n FROM customer_orders WHERE player_id = %s", ("pg-farmer",)
            )
            stored = cursor.fetchone()['n']

        assert stored <= ORDER_HISTORY_LIMIT + MAX_PENDING_ORDERS


@pytest.mark.integration
class TestMigrations:
    """Test the migration runner against an already migrated database."""

    def test_rerun_applies_nothing(self, pg_database):
        assert run_all_migrations(settings.test_database_url) == 0

    def test_ledger_lists_initial_schema(self, pg_database):
        with MigrationLedger(settings.test_database_url) as ledger:
            assert "001" in ledger.applied()
            ledger.record("001", "initial_schema")
            assert "001" in ledger.applied()
