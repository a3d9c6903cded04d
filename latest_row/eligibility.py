"""
Eligibility filter: the achievements a guild can rank unlocks for.

An achievement is eligible for a guild when it belongs to a game that is
attached (through `gameships`) to one of the guild's achievement categories.
Several games or categories can lead to the same achievement, so the result
is deduplicated.
"""

from __future__ import annotations

from typing import FrozenSet

from latest_row.infrastructure.storage import Storage
from latest_row.utils.logging import get_logger

log = get_logger(__name__)

OPERATION = "eligibility_filter"


class EligibilityFilter:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    def query_text(self) -> str:
        p = self._storage.param
        return f"""
            SELECT DISTINCT games_achievements.achievement_id AS achievement_id
            FROM games_achievements
            INNER JOIN gameships
                ON gameships.game_id = games_achievements.game_id
            INNER JOIN achievement_categories
                ON achievement_categories.id = gameships.achievement_category_id
            WHERE achievement_categories.guild_id = {p("guild_id")}
        """

    def resolve(self, guild_id: int) -> FrozenSet[int]:
        """
        Return the distinct achievement ids reachable from `guild_id`.

        An empty set means there is nothing to rank; it is not an error.
        """
        rows = self._storage.fetch_all(
            self.query_text(),
            {"guild_id": guild_id},
            operation=OPERATION,
            guild_id=guild_id,
        )
        eligible = frozenset(int(row["achievement_id"]) for row in rows)
        log.debug(
            "Resolved eligible achievements",
            extra={"guild_id": guild_id, "eligible": len(eligible)},
        )
        return eligible


__all__ = ["EligibilityFilter"]
