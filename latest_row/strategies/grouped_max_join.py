"""
Grouped max + self-join strategy.

Aggregates the guild's active rows by (player_id, achievement_id) to find
`MAX(id)` per group, then joins the aggregate back onto the table to recover
full rows. Cheap when groups are few and large; degrades when the number of
groups approaches the number of rows (one rejoin seek per group).
"""

from __future__ import annotations

from typing import List, Optional

from latest_row.domain.models import AchievementUnlock, StrategyKind
from latest_row.strategies.abstract import LatestRowStrategy, select_list, to_unlocks
from latest_row.utils.logging import get_logger

log = get_logger(__name__)


class GroupedMaxJoinStrategy(LatestRowStrategy):
    """
    Latest row per group via `GROUP BY ... MAX(id)` joined back on `id`.

    Both the aggregate and the outer query filter on `deleted_at IS NULL`
    and `guild_id`, since the predicate is not guaranteed to be pushed
    through the join.
    """

    kind = StrategyKind.GROUPED_MAX_JOIN
    description = "GROUP BY player/achievement with MAX(id), self-joined on id."

    def query_text(self) -> str:
        p = self._storage.param
        return f"""
            SELECT {select_list("unlocks")}
            FROM achievement_unlocks AS unlocks
            INNER JOIN (
                SELECT MAX(id) AS unlock_id
                FROM achievement_unlocks
                WHERE deleted_at IS NULL
                  AND guild_id = {p("guild_id")}
                GROUP BY player_id, achievement_id
            ) AS latest ON latest.unlock_id = unlocks.id
            WHERE unlocks.deleted_at IS NULL
              AND unlocks.guild_id = {p("guild_id")}
        """

    def fetch_latest(
        self, guild_id: int, timeout: Optional[float] = None
    ) -> List[AchievementUnlock]:
        rows = self._run(self.query_text(), {"guild_id": guild_id}, guild_id, timeout)
        log.debug(
            "Grouped max join fetched latest unlocks",
            extra={"guild_id": guild_id, "rows": len(rows)},
        )
        return to_unlocks(rows)


__all__ = ["GroupedMaxJoinStrategy"]
