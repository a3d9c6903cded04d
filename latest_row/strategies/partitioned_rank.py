"""
Ranked-partition strategy.

Restricts the scan to achievements eligible for the guild, numbers the rows
of every (player_id, achievement_id) partition newest first with
`ROW_NUMBER()`, and keeps the first row of each partition. A single
sort-and-rank pass; no rejoin.

Tie-break: partitions are ordered by `id DESC, created_at DESC`. Ids are
unique, so the secondary key only matters on a store that violates that;
`ROW_NUMBER()` still assigns exactly one row the number 1.
"""

from __future__ import annotations

from typing import List, Optional

from latest_row.domain.models import AchievementUnlock, StrategyKind
from latest_row.eligibility import EligibilityFilter
from latest_row.infrastructure.storage import Storage
from latest_row.strategies.abstract import (
    UNLOCK_COLUMNS,
    LatestRowStrategy,
    select_list,
    to_unlocks,
)
from latest_row.utils.logging import get_logger

log = get_logger(__name__)


class PartitionedRankStrategy(LatestRowStrategy):
    """
    Latest row per group via `ROW_NUMBER() OVER (PARTITION BY ...)`.

    Returns an empty list when the guild has no eligible achievements.
    """

    kind = StrategyKind.PARTITIONED_RANK
    description = "ROW_NUMBER() over player/achievement partitions, pre-filtered by eligibility."

    def __init__(self, storage: Storage, eligibility: Optional[EligibilityFilter] = None) -> None:
        super().__init__(storage)
        self._eligibility = eligibility or EligibilityFilter(storage)

    def query_text(self) -> str:
        p = self._storage.param
        return f"""
            SELECT {select_list("ranked")}
            FROM (
                SELECT {", ".join(UNLOCK_COLUMNS)},
                       ROW_NUMBER() OVER (
                           PARTITION BY player_id, achievement_id
                           ORDER BY id DESC, created_at DESC
                       ) AS rn
                FROM achievement_unlocks
                WHERE deleted_at IS NULL
                  AND guild_id = {p("guild_id")}
                  AND {self._storage.member_of("achievement_id", "achievement_ids")}
            ) AS ranked
            WHERE ranked.rn = 1
        """

    def fetch_latest(
        self, guild_id: int, timeout: Optional[float] = None
    ) -> List[AchievementUnlock]:
        eligible = self._eligibility.resolve(guild_id)
        if not eligible:
            log.info(
                "No eligible achievements; nothing to rank",
                extra={"guild_id": guild_id, "strategy": self.name},
            )
            return []

        params = {
            "guild_id": guild_id,
            "achievement_ids": self._storage.bind_members(eligible),
        }
        rows = self._run(self.query_text(), params, guild_id, timeout)
        log.debug(
            "Partitioned rank fetched latest unlocks",
            extra={"guild_id": guild_id, "rows": len(rows), "eligible": len(eligible)},
        )
        return to_unlocks(rows)


__all__ = ["PartitionedRankStrategy"]
