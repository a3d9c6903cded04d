"""
Database connection factory utilities for the latest-row selector.

Provides DSN construction, retried connection acquisition, a pool manager for
long-lived callers serving concurrent requests, and `open_storage()` which
yields the storage adapter selected by configuration.

Retries (tenacity) only apply to establishing a connection. Queries issued
through a `Storage` are never retried.
"""

from __future__ import annotations

import atexit
import sqlite3
import threading
from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from latest_row.config import Settings, get_settings
from latest_row.errors import StorageUnavailable
from latest_row.infrastructure.storage import PostgresStorage, SqliteStorage, Storage
from latest_row.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


class PoolManager:
    """
    Thread-safe singleton owning the shared connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._sync_pool = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(self, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
        """
        Get or create the synchronous connection pool.

        Parameters
        ----------
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.
        """
        with self._lock:
            if self._sync_pool is None:
                self._sync_pool = ConnectionPool(
                    conninfo=build_dsn(), min_size=min_size, max_size=max_size, open=True
                )
            return self._sync_pool

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._sync_pool is not None:
                try:
                    self._sync_pool.close()
                except psycopg.Error:
                    log.warning("Failed to close connection pool", exc_info=True)
                finally:
                    self._sync_pool = None


def get_sync_connection(dsn: Optional[str] = None, attempts: Optional[int] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries with exponential backoff for transient connection errors. Use this
    for one-off invocations such as the CLI. Prefer the pool for repeated use.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    retrying = Retrying(
        stop=stop_after_attempt(attempts or get_settings().db_connect_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
        reraise=True,
    )
    return retrying(psycopg.connect, dsn or build_dsn())


def get_sync_pool(min_size: Optional[int] = None, max_size: Optional[int] = None) -> ConnectionPool:
    """
    Get or create the shared connection pool via PoolManager.
    """
    settings = get_settings()
    return PoolManager().get_sync_pool(
        min_size=settings.db_pool_min_size if min_size is None else min_size,
        max_size=settings.db_pool_max_size if max_size is None else max_size,
    )


@contextmanager
def open_storage(settings: Optional[Settings] = None) -> Generator[Storage, None, None]:
    """
    Open a dedicated connection for the configured backend and wrap it.

    SQLite databases are opened read-only.

    Raises
    ------
    StorageUnavailable
        If the connection cannot be established.
    """
    settings = settings or get_settings()

    if settings.db_backend == "sqlite":
        try:
            sqlite_conn = sqlite3.connect(f"file:{settings.sqlite_path}?mode=ro", uri=True)
        except sqlite3.Error as exc:
            raise StorageUnavailable(None, "connect", str(exc)) from exc
        try:
            yield SqliteStorage(sqlite_conn)
        finally:
            sqlite_conn.close()
        return

    try:
        conn = get_sync_connection(build_dsn(settings), attempts=settings.db_connect_attempts)
    except psycopg.Error as exc:
        raise StorageUnavailable(None, "connect", str(exc)) from exc
    try:
        yield PostgresStorage(conn)
    finally:
        conn.close()


@contextmanager
def pooled_storage() -> Generator[PostgresStorage, None, None]:
    """
    Borrow a pooled PostgreSQL connection for the duration of the block.
    """
    pool = get_sync_pool()
    try:
        with pool.connection() as conn:
            yield PostgresStorage(conn)
    except psycopg.OperationalError as exc:
        raise StorageUnavailable(None, "connect", str(exc)) from exc


__all__ = [
    "PoolManager",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "open_storage",
    "pooled_storage",
]
