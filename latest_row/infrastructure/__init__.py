"""
Infrastructure package for the latest-row selector.

Centralizes database connectivity concerns (connection factories, pooling) and
the dialect adapters. Keep this layer focused on I/O and resource management,
decoupled from selection and benchmarking logic.
"""

from latest_row.infrastructure.db_factory import (
    build_dsn,
    get_sync_connection,
    get_sync_pool,
    open_storage,
    pooled_storage,
)
from latest_row.infrastructure.storage import PostgresStorage, SqliteStorage, Storage

__all__ = [
    "PostgresStorage",
    "SqliteStorage",
    "Storage",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "open_storage",
    "pooled_storage",
]
