import psycopg2
import psycopg2.extras
import psycopg2.pool
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional
import logging

from app.core.errors import PlayerAlreadyExists, PlayerNotFound
from app.models.schemas import (
    CustomerOrder,
    FarmState,
    ItemRequirements,
    OrderRewards,
    Oven,
    Player,
    Plot,
    ResourceBundle,
    SeasonalChallenge,
)

logger = logging.getLogger(__name__)

PLAYER_COLUMNS = [
    "id", "level", "experience", "coins", "seeds", "apple_seeds", "pumpkins",
    "apples", "pies", "apple_pies", "fertilizer", "tools", "day", "field_size",
    "kitchen_slots", "kitchen_unlocked", "last_daily_collection", "last_updated",
    "created_at",
]
PLAYER_PLACEHOLDERS = ', '.join(f"%({c})s" for c in PLAYER_COLUMNS)


def _enum_value(value):
    return value.value if value is not None else None


def _json(model) -> psycopg2.extras.Json:
    return psycopg2.extras.Json(model.model_dump(exclude_none=True))


class Database:
    """PostgreSQL store for player farms with connection pooling.

    The pool is opened on first use, so constructing a Database never touches
    the network. An unreachable server surfaces as psycopg2.OperationalError
    from the first query (or from ping()).
    """

    def __init__(self, database_url: Optional[str] = None,
                 minconn: Optional[int] = None, maxconn: Optional[int] = None):
        from app.core.config import settings

        self.database_url = database_url or settings.database_url
        self._minconn = minconn or settings.db_pool_min
        self._maxconn = maxconn or settings.db_pool_max
        self._pool = None
        self._pool_lock = threading.Lock()

    def _init_pool(self):
        """Initialize connection pool."""
        with self._pool_lock:
            if self._pool is not None:
                return
            try:
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._minconn,
                    maxconn=self._maxconn,
                    dsn=self.database_url,
                    cursor_factory=psycopg2.extras.RealDictCursor
                )
                logger.info("[OK] PostgreSQL connection pool initialized")
            except Exception as e:
                logger.error(f"[ERROR] Failed to initialize connection pool: {e}")
                raise

    def close(self):
        with self._pool_lock:
            if self._pool:
                self._pool.closeall()
                self._pool = None

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections from pool."""
        if self._pool is None:
            self._init_pool()

        conn = None
        try:
            conn = self._pool.getconn()
            yield conn
            conn.commit()
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                self._pool.putconn(conn)

    def ping(self) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 AS ok")
            return cursor.fetchone()['ok'] == 1

    # Player Operations
    def player_exists(self, player_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM players WHERE id = %s", (player_id,))
            return cursor.fetchone() is not None

    def create_player(self, state: FarmState) -> None:
        """Insert a new player together with its initial plots and ovens."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            values: Dict = state.player.model_dump(include=set(PLAYER_COLUMNS))
            cursor.execute(f"""
                INSERT INTO players ({', '.join(PLAYER_COLUMNS)})
                VALUES ({PLAYER_PLACEHOLDERS})
                ON CONFLICT (id) DO NOTHING
            """, values)
            if cursor.rowcount == 0:
                raise PlayerAlreadyExists(state.player.id)
            self._save_children(cursor, state)
        logger.info(f"[FARM] Created player {state.player.id}")

    @contextmanager
    def locked_player(self, player_id: str) -> Iterator[FarmState]:
        """
        Load a player's whole farm inside one transaction.

        The player row is locked with SELECT ... FOR UPDATE so concurrent
        requests for the same player queue up behind each other. Whatever the
        caller leaves in the yielded state is written back on a clean exit;
        any exception rolls the transaction back.
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {', '.join(PLAYER_COLUMNS)} FROM players WHERE id = %s FOR UPDATE",
                (player_id,)
            )
            row = cursor.fetchone()
            if not row:
                raise PlayerNotFound(player_id)

            state = FarmState(
                player=Player(**row),
                plots=self._load_plots(cursor, player_id),
                ovens=self._load_ovens(cursor, player_id),
                orders=self._load_orders(cursor, player_id),
                challenges=self._load_challenges(cursor, player_id),
            )

            yield state

            self._upsert_player(cursor, state.player)
            self._save_children(cursor, state)

    # Loading
    def _load_plots(self, cursor, player_id: str) -> List[Plot]:
        cursor.execute("""
            SELECT player_id, row_index, col_index, state, crop_type, planted_at, fertilized
            FROM plots
            WHERE player_id = %s
            ORDER BY row_index, col_index
        """, (player_id,))

        return [
            Plot(
                player_id=row['player_id'],
                row=row['row_index'],
                col=row['col_index'],
                state=row['state'],
                crop_type=row['crop_type'],
                planted_at=row['planted_at'],
                fertilized=row['fertilized'],
            )
            for row in cursor.fetchall()
        ]

    def _load_ovens(self, cursor, player_id: str) -> List[Oven]:
        cursor.execute("""
            SELECT player_id, slot_number, state, pie_type, started_at
            FROM ovens
            WHERE player_id = %s
            ORDER BY slot_number
        """, (player_id,))
        return [Oven(**row) for row in cursor.fetchall()]

    def _load_orders(self, cursor, player_id: str) -> List[CustomerOrder]:
        cursor.execute("""
            SELECT id, player_id, customer_name, title, required_items, rewards, status,
                   time_limit_minutes, created_at, expires_at, completed_at
            FROM customer_orders
            WHERE player_id = %s
            ORDER BY created_at
        """, (player_id,))

        orders = []
        for row in cursor.fetchall():
            data = dict(row)
            data['required_items'] = ItemRequirements(**(row['required_items'] or {}))
            data['rewards'] = OrderRewards(**(row['rewards'] or {}))
            orders.append(CustomerOrder(**data))
        return orders

    def _load_challenges(self, cursor, player_id: str) -> List[SeasonalChallenge]:
        cursor.execute("""
            SELECT id, player_id, template, title, description, season, type,
                   target_value, current_progress, rewards, status, difficulty,
                   created_at, expires_at, completed_at
            FROM seasonal_challenges
            WHERE player_id = %s
            ORDER BY created_at
        """, (player_id,))

        challenges = []
        for row in cursor.fetchall():
            data = dict(row)
            data['rewards'] = ResourceBundle(**(row['rewards'] or {}))
            challenges.append(SeasonalChallenge(**data))
        return challenges

    # Saving
    def _upsert_player(self, cursor, player: Player) -> None:
        values: Dict = player.model_dump(include=set(PLAYER_COLUMNS))
        columns = ', '.join(PLAYER_COLUMNS)
        updates = ', '.join(f"{c} = EXCLUDED.{c}" for c in PLAYER_COLUMNS if c != 'id')
        cursor.execute(f"""
            INSERT INTO players ({columns})
            VALUES ({PLAYER_PLACEHOLDERS})
            ON CONFLICT (id) DO UPDATE SET {updates}
        """, values)

    def _save_children(self, cursor, state: FarmState) -> None:
        player_id = state.player.id

        if state.plots:
            psycopg2.extras.execute_values(cursor, """
                INSERT INTO plots (player_id, row_index, col_index, state, crop_type, planted_at, fertilized)
                VALUES %s
                ON CONFLICT (player_id, row_index, col_index) DO UPDATE SET
                    state = EXCLUDED.state,
                    crop_type = EXCLUDED.crop_type,
                    planted_at = EXCLUDED.planted_at,
                    fertilized = EXCLUDED.fertilized
            """, [
                (player_id, p.row, p.col, p.state.value, _enum_value(p.crop_type),
                 p.planted_at, p.fertilized)
                for p in state.plots
            ])

        if state.ovens:
            psycopg2.extras.execute_values(cursor, """
                INSERT INTO ovens (player_id, slot_number, state, pie_type, started_at)
                VALUES %s
                ON CONFLICT (player_id, slot_number) DO UPDATE SET
                    state = EXCLUDED.state,
                    pie_type = EXCLUDED.pie_type,
                    started_at = EXCLUDED.started_at
            """, [
                (player_id, o.slot_number, o.state.value, _enum_value(o.pie_type), o.started_at)
                for o in state.ovens
            ])

        # Pruned history is absent from the state
        cursor.execute("""
            DELETE FROM customer_orders
            WHERE player_id = %s AND NOT (id = ANY(%s::text[]))
        """, (player_id, [o.id for o in state.orders]))

        if state.orders:
            psycopg2.extras.execute_values(cursor, """
                INSERT INTO customer_orders
                (id, player_id, customer_name, title, required_items, rewards, status,
                 time_limit_minutes, created_at, expires_at, completed_at)
                VALUES %s
                ON CONFLICT (player_id, id) DO UPDATE SET
                    status = EXCLUDED.status,
                    completed_at = EXCLUDED.completed_at
            """, [
                (o.id, player_id, o.customer_name, o.title, _json(o.required_items),
                 _json(o.rewards), o.status.value, o.time_limit_minutes, o.created_at,
                 o.expires_at, o.completed_at)
                for o in state.orders
            ])

        # Regenerated and pruned challenges are absent from the state
        cursor.execute("""
            DELETE FROM seasonal_challenges
            WHERE player_id = %s AND NOT (id = ANY(%s::text[]))
        """, (player_id, [c.id for c in state.challenges]))

        if state.challenges:
            psycopg2.extras.execute_values(cursor, """
                INSERT INTO seasonal_challenges
                (id, player_id, template, title, description, season, type, target_value,
                 current_progress, rewards, status, difficulty, created_at, expires_at,
                 completed_at)
                VALUES %s
                ON CONFLICT (player_id, id) DO UPDATE SET
                    current_progress = EXCLUDED.current_progress,
                    status = EXCLUDED.status,
                    completed_at = EXCLUDED.completed_at
            """, [
                (c.id, player_id, c.template, c.title, c.description, c.season,
                 c.type.value, c.target_value, c.current_progress, _json(c.rewards),
                 c.status.value, c.difficulty, c.created_at, c.expires_at, c.completed_at)
                for c in state.challenges
            ])


_database: Optional[Database] = None


def get_database() -> Database:
    """FastAPI dependency: the process's store, created on first use."""
    global _database
    if _database is None:
        _database = Database()
    return _database


def close_database() -> None:
    global _database
    if _database is not None:
        _database.close()
        _database = None
