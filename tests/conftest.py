"""
Pytest configuration for the latest-row selector.

Provides fixtures for:
- An in-memory SQLite database with the unlock schema (unit tests)
- A `Seeder` helper for unlock rows and the eligibility chain
- PostgreSQL connection management for integration tests
- Settings cache isolation
"""

from __future__ import annotations

import itertools
import os
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, Optional

import psycopg
import pytest

from latest_row.config import Settings, get_settings
from latest_row.infrastructure.storage import SqliteStorage

SQLITE_SCHEMA = """
CREATE TABLE achievement_categories (
    id INTEGER PRIMARY KEY,
    guild_id INTEGER NOT NULL,
    name TEXT
);
CREATE TABLE games_achievements (
    id INTEGER PRIMARY KEY,
    game_id INTEGER NOT NULL,
    achievement_id INTEGER NOT NULL
);
CREATE TABLE gameships (
    id INTEGER PRIMARY KEY,
    game_id INTEGER NOT NULL,
    achievement_category_id INTEGER NOT NULL,
    guild_id INTEGER NOT NULL
);
CREATE TABLE achievement_unlocks (
    id INTEGER PRIMARY KEY,
    player_id INTEGER NOT NULL,
    achievement_id INTEGER NOT NULL,
    guild_id INTEGER NOT NULL,
    unlocked_at TEXT,
    progress_percentage INTEGER,
    deleted_at TEXT,
    created_at TEXT NOT NULL
);
"""

BASE_TS = datetime(2025, 7, 12, tzinfo=timezone.utc)


class Seeder:
    """
    Insert unlock rows and eligibility links into a SQLite connection.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._unlock_ids = itertools.count(1)
        self._game_ids = itertools.count(1000)

    def unlock(
        self,
        guild_id: int,
        player_id: int,
        achievement_id: int,
        *,
        unlock_id: Optional[int] = None,
        deleted: bool = False,
        progress: Optional[int] = None,
    ) -> int:
        unlock_id = unlock_id if unlock_id is not None else next(self._unlock_ids)
        created_at = (BASE_TS + timedelta(seconds=unlock_id)).isoformat()
        self.conn.execute(
            "INSERT INTO achievement_unlocks "
            "(id, player_id, achievement_id, guild_id, unlocked_at, progress_percentage, "
            "deleted_at, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                unlock_id,
                player_id,
                achievement_id,
                guild_id,
                created_at,
                progress,
                created_at if deleted else None,
                created_at,
            ),
        )
        self.conn.commit()
        return unlock_id

    def eligible(self, guild_id: int, *achievement_ids: int, game_id: Optional[int] = None) -> int:
        """Attach achievements to the guild through a new category and game."""
        game_id = game_id if game_id is not None else next(self._game_ids)
        cur = self.conn.execute(
            "INSERT INTO achievement_categories (guild_id, name) VALUES (?, ?)",
            (guild_id, f"category-{game_id}"),
        )
        self.conn.execute(
            "INSERT INTO gameships (game_id, achievement_category_id, guild_id) VALUES (?, ?, ?)",
            (game_id, cur.lastrowid, guild_id),
        )
        self.conn.executemany(
            "INSERT INTO games_achievements (game_id, achievement_id) VALUES (?, ?)",
            [(game_id, achievement_id) for achievement_id in achievement_ids],
        )
        self.conn.commit()
        return game_id


def create_sqlite_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SQLITE_SCHEMA)


@pytest.fixture(autouse=True)
def _isolated_settings() -> Generator[None, None, None]:
    """Drop cached settings around every test so env overrides apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sqlite_conn() -> Generator[sqlite3.Connection, None, None]:
    conn = sqlite3.connect(":memory:")
    create_sqlite_schema(conn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def storage(sqlite_conn: sqlite3.Connection) -> SqliteStorage:
    return SqliteStorage(sqlite_conn)


@pytest.fixture
def seeder(sqlite_conn: sqlite3.Connection) -> Seeder:
    return Seeder(sqlite_conn)


@pytest.fixture
def sqlite_file(tmp_path: Path) -> Generator[tuple[Path, Seeder], None, None]:
    """
    File-backed SQLite database for code paths that open their own connection.
    """
    path = tmp_path / "achievements.sqlite3"
    conn = sqlite3.connect(path)
    create_sqlite_schema(conn)
    try:
        yield path, Seeder(conn)
    finally:
        conn.close()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "achievements"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        with conn.cursor() as cur:
            init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
            cur.execute(init_sql_path.read_text())
        conn.commit()
        yield conn
    finally:
        conn.close()


@pytest.fixture
def clean_tables(db_connection: psycopg.Connection) -> Generator[None, None, None]:
    """
    Truncate the unlock and eligibility tables around each test function.
    """
    truncate = (
        "TRUNCATE TABLE public.achievement_unlocks, public.games_achievements, "
        "public.gameships, public.achievement_categories RESTART IDENTITY CASCADE;"
    )
    with db_connection.cursor() as cur:
        cur.execute(truncate)
    db_connection.commit()
    yield
    with db_connection.cursor() as cur:
        cur.execute(truncate)
    db_connection.commit()
