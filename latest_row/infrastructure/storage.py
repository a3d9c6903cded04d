"""
Storage adapters for the latest-row selector.

The selector, probe, filter and strategies only ever talk to a `Storage`
instance that is passed to them explicitly. Each adapter owns the dialect
details the core must not see:

- placeholder syntax for named parameters
- binding of an identifier list for membership tests
- how a per-query timeout is enforced (and the in-flight query aborted)
- mapping of driver exceptions onto `StorageUnavailable` / `QueryTimeout`

All queries are parameterized; identifiers coming from callers are never
formatted into SQL text.
"""

from __future__ import annotations

import abc
import json
import sqlite3
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

import psycopg
from psycopg import Connection
from psycopg.rows import dict_row

from latest_row.errors import QueryTimeout, StorageUnavailable
from latest_row.utils.logging import get_logger

log = get_logger(__name__)

Row = Dict[str, Any]


def apply_statement_timeout(cur: psycopg.Cursor, timeout_ms: int) -> None:
    """
    Set a transaction-local statement_timeout on the server.

    Postgres cancels the running statement once the budget is spent, so the
    query does not keep running after the caller gives up on it.
    """
    cur.execute(
        "SELECT set_config('statement_timeout', %s, true);",
        (str(max(1, timeout_ms)),),
    )


class Storage(abc.ABC):
    """
    Read-only query interface consumed by the core.

    Subclasses set `dialect` and implement the placeholder helpers and
    `fetch_all`.
    """

    dialect: str

    @abc.abstractmethod
    def param(self, name: str) -> str:
        """Return the placeholder text for a named parameter."""
        raise NotImplementedError

    @abc.abstractmethod
    def member_of(self, column: str, name: str) -> str:
        """Return a predicate testing `column` against a bound identifier list."""
        raise NotImplementedError

    @abc.abstractmethod
    def bind_members(self, values: Iterable[int]) -> Any:
        """Convert an identifier collection into the value bound for `member_of`."""
        raise NotImplementedError

    @abc.abstractmethod
    def fetch_all(
        self,
        sql: str,
        params: Mapping[str, Any],
        *,
        operation: str,
        guild_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[Row]:
        """
        Run a read-only query and return its rows as dictionaries.

        Parameters
        ----------
        sql : str
            Query text using this adapter's placeholders.
        params : Mapping[str, Any]
            Named parameter values.
        operation : str
            Operation name reported in errors and logs.
        guild_id : int | None
            Scope served by the query, reported in errors.
        timeout : float | None
            Seconds after which the storage engine aborts the query.

        Raises
        ------
        QueryTimeout
            If `timeout` is set and the query was cancelled for exceeding it.
        StorageUnavailable
            For any other driver or connectivity failure.
        """
        raise NotImplementedError

    def fetch_one(
        self,
        sql: str,
        params: Mapping[str, Any],
        *,
        operation: str,
        guild_id: Optional[int] = None,
    ) -> Optional[Row]:
        rows = self.fetch_all(sql, params, operation=operation, guild_id=guild_id)
        return rows[0] if rows else None


class PostgresStorage(Storage):
    """
    PostgreSQL adapter over a psycopg 3 connection.

    Each query runs in its own transaction block so a cancelled statement
    rolls back cleanly and the connection stays usable.
    """

    dialect = "postgresql"

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def param(self, name: str) -> str:
        return f"%({name})s"

    def member_of(self, column: str, name: str) -> str:
        return f"{column} = ANY({self.param(name)})"

    def bind_members(self, values: Iterable[int]) -> List[int]:
        return sorted(values)

    def fetch_all(
        self,
        sql: str,
        params: Mapping[str, Any],
        *,
        operation: str,
        guild_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[Row]:
        try:
            with self._conn.transaction():
                with self._conn.cursor(row_factory=dict_row) as cur:
                    if timeout is not None:
                        apply_statement_timeout(cur, int(timeout * 1000))
                    cur.execute(sql, params)
                    return cur.fetchall()
        except psycopg.errors.QueryCanceled as exc:
            if timeout is None:
                raise StorageUnavailable(guild_id, operation, str(exc)) from exc
            log.warning(
                "Query cancelled by statement_timeout",
                extra={"operation": operation, "guild_id": guild_id, "timeout": timeout},
            )
            raise QueryTimeout(guild_id, operation, timeout) from exc
        except psycopg.Error as exc:
            raise StorageUnavailable(guild_id, operation, str(exc)) from exc


class SqliteStorage(Storage):
    """
    SQLite adapter over a stdlib connection.

    Identifier lists are bound as a single JSON array and expanded with
    `json_each`. Timeouts install a progress handler that interrupts the
    running statement once the deadline passes.
    """

    dialect = "sqlite"
    progress_interval: int = 1000

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def param(self, name: str) -> str:
        return f":{name}"

    def member_of(self, column: str, name: str) -> str:
        return f"{column} IN (SELECT value FROM json_each({self.param(name)}))"

    def bind_members(self, values: Iterable[int]) -> str:
        return json.dumps(sorted(values))

    def fetch_all(
        self,
        sql: str,
        params: Mapping[str, Any],
        *,
        operation: str,
        guild_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[Row]:
        if timeout is not None:
            deadline = time.monotonic() + timeout
            self._conn.set_progress_handler(
                lambda: 1 if time.monotonic() >= deadline else 0, self.progress_interval
            )
        try:
            cur = self._conn.execute(sql, dict(params))
            try:
                columns = [column[0] for column in cur.description]
                return [dict(zip(columns, row)) for row in cur.fetchall()]
            finally:
                cur.close()
        except sqlite3.OperationalError as exc:
            if timeout is not None and "interrupted" in str(exc):
                log.warning(
                    "Query interrupted by progress handler",
                    extra={"operation": operation, "guild_id": guild_id, "timeout": timeout},
                )
                raise QueryTimeout(guild_id, operation, timeout) from exc
            raise StorageUnavailable(guild_id, operation, str(exc)) from exc
        except sqlite3.Error as exc:
            raise StorageUnavailable(guild_id, operation, str(exc)) from exc
        finally:
            if timeout is not None:
                self._conn.set_progress_handler(None, 0)


__all__ = [
    "PostgresStorage",
    "Row",
    "SqliteStorage",
    "Storage",
    "apply_statement_timeout",
]
