"""
Integration tests for the latest-row selector against PostgreSQL.

These tests run against a real PostgreSQL instance and verify that:
1. Both strategies return the same latest rows on a seeded guild
2. The statement timeout aborts a slow query and leaves the connection usable
3. The benchmark reports both strategies end to end

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
import random

import psycopg
import pytest

from latest_row.benchmark import BenchmarkRunner
from latest_row.eligibility import EligibilityFilter
from latest_row.errors import QueryTimeout
from latest_row.infrastructure.storage import PostgresStorage
from latest_row.orchestrator import latest_unlocks
from latest_row.statistics import StatisticsProbe
from latest_row.strategies import GroupedMaxJoinStrategy, PartitionedRankStrategy

GUILD_ID = 1
OTHER_GUILD_ID = 2
SEED = 123
UNLOCK_ROWS = 500

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
        reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
    ),
]


def _link(conn: psycopg.Connection, guild_id: int, game_id: int, achievement_ids) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "INSERT INTO achievement_categories (guild_id, name) VALUES (%s, %s) RETURNING id",
            (guild_id, f"category-{game_id}"),
        )
        (category_id,) = cur.fetchone()
        cur.execute(
            "INSERT INTO gameships (game_id, achievement_category_id, guild_id) VALUES (%s, %s, %s)",
            (game_id, category_id, guild_id),
        )
        cur.executemany(
            "INSERT INTO games_achievements (game_id, achievement_id) VALUES (%s, %s)",
            [(game_id, achievement_id) for achievement_id in achievement_ids],
        )


@pytest.fixture
def seeded_guild(db_connection: psycopg.Connection, clean_tables) -> int:
    """
    Seed a guild with duplicated, soft-deleted and foreign-guild unlocks.
    """
    rng = random.Random(SEED)
    achievements = list(range(1, 11))
    _link(db_connection, GUILD_ID, 100, achievements[:6])
    _link(db_connection, GUILD_ID, 101, achievements[4:])
    _link(db_connection, OTHER_GUILD_ID, 200, achievements)

    rows = [
        (
            rng.choice([GUILD_ID, OTHER_GUILD_ID]),
            rng.randint(1, 20),
            rng.choice(achievements),
            rng.randint(0, 100),
            rng.random() < 0.2,
        )
        for _ in range(UNLOCK_ROWS)
    ]
    with db_connection.cursor() as cur:
        cur.executemany(
            "INSERT INTO achievement_unlocks "
            "(guild_id, player_id, achievement_id, progress_percentage, unlocked_at, deleted_at) "
            "VALUES (%s, %s, %s, %s, now(), CASE WHEN %s THEN now() END)",
            rows,
        )
    db_connection.commit()
    return GUILD_ID


class TestStrategies:
    def test_strategies_return_identical_rows(self, db_connection, seeded_guild: int):
        storage = PostgresStorage(db_connection)

        joined = GroupedMaxJoinStrategy(storage).fetch_latest(seeded_guild)
        ranked = PartitionedRankStrategy(storage).fetch_latest(seeded_guild)

        assert joined
        assert {row.id for row in joined} == {row.id for row in ranked}
        keys = [row.group_key for row in joined]
        assert len(keys) == len(set(keys))
        assert all(row.deleted_at is None for row in joined)

    def test_latest_row_is_newest_active_row(self, db_connection, seeded_guild: int):
        storage = PostgresStorage(db_connection)
        with db_connection.cursor() as cur:
            cur.execute(
                "SELECT player_id, achievement_id, MAX(id) FROM achievement_unlocks "
                "WHERE guild_id = %s AND deleted_at IS NULL GROUP BY player_id, achievement_id",
                (seeded_guild,),
            )
            expected = {(player, achievement): latest for player, achievement, latest in cur}
        db_connection.commit()

        rows = latest_unlocks(storage, seeded_guild)

        assert {row.group_key: row.id for row in rows} == expected

    def test_probe_and_filter(self, db_connection, seeded_guild: int):
        storage = PostgresStorage(db_connection)

        stats = StatisticsProbe(storage).compute(seeded_guild)
        eligible = EligibilityFilter(storage).resolve(seeded_guild)

        assert stats.total_active > 0
        assert stats.unique_groups <= stats.total_active
        assert eligible == frozenset(range(1, 11))


class TestTimeouts:
    def test_statement_timeout_raises_query_timeout(self, db_connection):
        storage = PostgresStorage(db_connection)

        with pytest.raises(QueryTimeout):
            storage.fetch_all(
                "SELECT pg_sleep(%(seconds)s)",
                {"seconds": 2},
                operation="sleep",
                guild_id=GUILD_ID,
                timeout=0.1,
            )

        row = storage.fetch_one("SELECT 1 AS one", {}, operation="after_timeout")
        assert row == {"one": 1}

    def test_timeout_does_not_leak_to_next_query(self, db_connection):
        storage = PostgresStorage(db_connection)
        storage.fetch_all("SELECT 1", {}, operation="bounded", timeout=0.5)

        row = storage.fetch_one("SHOW statement_timeout", {}, operation="show")

        assert row == {"statement_timeout": "0"}


class TestBenchmark:
    def test_benchmark_reports_both_strategies(self, db_connection, seeded_guild: int):
        result = BenchmarkRunner(PostgresStorage(db_connection), warmup=True).run(seeded_guild)

        assert {result.winner.kind.value, result.loser.kind.value} == {
            "GroupedMaxJoin",
            "PartitionedRank",
        }
        assert result.winner.row_count > 0
        assert result.eligible_targets == 10
        payload = result.to_payload()
        assert payload["guild_id"] == seeded_guild
