"""
Statistics probe: cheap aggregates the selector bases its decision on.

One grouped pass over the guild's active rows yields the active-row total,
the number of distinct (player_id, achievement_id) groups and the size of the
largest group. A scalar subquery adds the guild's row count including
soft-deleted rows.
"""

from __future__ import annotations

from latest_row.domain.models import DatasetStatistics
from latest_row.infrastructure.storage import Storage
from latest_row.utils.logging import get_logger

log = get_logger(__name__)

OPERATION = "statistics_probe"


class StatisticsProbe:
    """Compute `DatasetStatistics` for a guild. Read-only, no retries."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def query_text(self) -> str:
        p = self._storage.param
        return f"""
            SELECT COUNT(*) AS unique_groups,
                   (
                       SELECT COUNT(*)
                       FROM achievement_unlocks
                       WHERE guild_id = {p("guild_id")}
                   ) AS total_rows,
                   COALESCE(SUM(group_rows), 0) AS total_active,
                   COALESCE(MAX(group_rows), 0) AS max_duplication
            FROM (
                SELECT COUNT(*) AS group_rows
                FROM achievement_unlocks
                WHERE deleted_at IS NULL
                  AND guild_id = {p("guild_id")}
                GROUP BY player_id, achievement_id
            ) AS grouped
        """

    def compute(self, guild_id: int) -> DatasetStatistics:
        row = self._storage.fetch_one(
            self.query_text(),
            {"guild_id": guild_id},
            operation=OPERATION,
            guild_id=guild_id,
        ) or {}

        total_active = int(row.get("total_active") or 0)
        unique_groups = int(row.get("unique_groups") or 0)
        avg_duplication = total_active / unique_groups if unique_groups else 0.0

        stats = DatasetStatistics(
            guild_id=guild_id,
            total_rows=int(row.get("total_rows") or 0),
            total_active=total_active,
            unique_groups=unique_groups,
            avg_duplication=avg_duplication,
            max_duplication=int(row.get("max_duplication") or 0),
        )
        log.debug(
            "Computed dataset statistics",
            extra={
                "guild_id": guild_id,
                "total_active": stats.total_active,
                "unique_groups": stats.unique_groups,
                "avg_duplication": round(stats.avg_duplication, 2),
            },
        )
        return stats


__all__ = ["StatisticsProbe"]
