from __future__ import annotations

from contextlib import contextmanager
from typing import Any, ClassVar, Iterator

import psycopg
import pytest

from latest_row.config import Settings
from latest_row.errors import StorageUnavailable
from latest_row.infrastructure import db_factory
from latest_row.infrastructure.storage import PostgresStorage, SqliteStorage

GUILD_ID = 1


class _FakeConnectionPool:
    instances: ClassVar[list["_FakeConnectionPool"]] = []

    def __init__(self, conninfo: str, min_size: int, max_size: int, open: bool) -> None:
        self.conninfo = conninfo
        self.min_size = min_size
        self.max_size = max_size
        self.open = open
        self.closed = False
        self.borrowed = 0
        _FakeConnectionPool.instances.append(self)

    @contextmanager
    def connection(self) -> Iterator[object]:
        if self.closed:
            raise psycopg.OperationalError("pool is closed")
        self.borrowed += 1
        yield object()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_pool(monkeypatch):
    _FakeConnectionPool.instances = []
    monkeypatch.setattr(db_factory, "ConnectionPool", _FakeConnectionPool)
    manager = db_factory.PoolManager()
    manager.close_all()
    yield _FakeConnectionPool
    manager.close_all()


def test_build_dsn_uses_settings() -> None:
    settings = Settings(db_user="u", db_password="p", db_host="h", db_port=6543, db_name="n")

    assert db_factory.build_dsn(settings) == "postgresql://u:p@h:6543/n"


def test_open_storage_sqlite_is_read_only(sqlite_file) -> None:
    path, seeder = sqlite_file
    seeder.unlock(GUILD_ID, player_id=1, achievement_id=1)
    settings = Settings(db_backend="sqlite", sqlite_path=str(path))

    with db_factory.open_storage(settings) as storage:
        assert isinstance(storage, SqliteStorage)
        rows = storage.fetch_all(
            "SELECT COUNT(*) AS total FROM achievement_unlocks", {}, operation="count"
        )
        assert rows == [{"total": 1}]
        with pytest.raises(StorageUnavailable):
            storage.fetch_all("DELETE FROM achievement_unlocks", {}, operation="delete")


def test_open_storage_missing_sqlite_file(tmp_path) -> None:
    settings = Settings(db_backend="sqlite", sqlite_path=str(tmp_path / "absent.sqlite3"))

    with pytest.raises(StorageUnavailable) as excinfo:
        with db_factory.open_storage(settings):
            pass

    assert excinfo.value.operation == "connect"
    assert excinfo.value.guild_id is None


def test_open_storage_postgres_failure_maps_to_storage_unavailable(monkeypatch) -> None:
    def _refuse(dsn: str, attempts: int | None = None) -> Any:
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(db_factory, "get_sync_connection", _refuse)

    with pytest.raises(StorageUnavailable) as excinfo:
        with db_factory.open_storage(Settings(db_backend="postgres")):
            pass

    assert excinfo.value.to_dict()["message"] == "connection refused"


def test_open_storage_postgres_closes_connection(monkeypatch) -> None:
    class _Conn:
        closed = False

        def close(self) -> None:
            self.closed = True

    conn = _Conn()
    monkeypatch.setattr(db_factory, "get_sync_connection", lambda dsn, attempts=None: conn)

    with db_factory.open_storage(Settings(db_backend="postgres")) as storage:
        assert isinstance(storage, PostgresStorage)
        assert not conn.closed

    assert conn.closed


def test_get_sync_connection_retries_then_reraises(monkeypatch) -> None:
    calls: list[str] = []

    def _fail(dsn: str) -> Any:
        calls.append(dsn)
        raise psycopg.OperationalError("down")

    monkeypatch.setattr(db_factory.psycopg, "connect", _fail)

    with pytest.raises(psycopg.OperationalError):
        db_factory.get_sync_connection("postgresql://x@y/z", attempts=1)

    assert calls == ["postgresql://x@y/z"]


def test_pool_manager_is_singleton_and_reuses_pool(fake_pool, monkeypatch) -> None:
    monkeypatch.setenv("DB_POOL_MIN_SIZE", "2")
    monkeypatch.setenv("DB_POOL_MAX_SIZE", "4")

    first = db_factory.get_sync_pool()
    second = db_factory.get_sync_pool()

    assert db_factory.PoolManager() is db_factory.PoolManager()
    assert first is second
    assert len(fake_pool.instances) == 1
    assert (first.min_size, first.max_size) == (2, 4)


def test_pooled_storage_borrows_connection(fake_pool) -> None:
    with db_factory.pooled_storage() as storage:
        assert isinstance(storage, PostgresStorage)

    assert fake_pool.instances[0].borrowed == 1


def test_pooled_storage_failure_maps_to_storage_unavailable(fake_pool) -> None:
    pool = db_factory.get_sync_pool()
    pool.closed = True

    with pytest.raises(StorageUnavailable):
        with db_factory.pooled_storage():
            pass


def test_close_all_releases_pool(fake_pool) -> None:
    pool = db_factory.get_sync_pool()

    db_factory.PoolManager().close_all()

    assert pool.closed
    assert db_factory.get_sync_pool() is not pool
