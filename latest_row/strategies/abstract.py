"""
Abstract strategy interface for latest-row-per-group retrieval.

Concrete strategies (grouped max + self-join, ranked partition) implement
`LatestRowStrategy` and return validated `AchievementUnlock` models so the
selector, the benchmark runner and callers can treat them interchangeably.
"""

from __future__ import annotations

import abc
from typing import Iterable, List, Mapping, Optional

from latest_row.domain.models import AchievementUnlock, StrategyKind
from latest_row.infrastructure.storage import Row, Storage

UNLOCK_COLUMNS = (
    "id",
    "player_id",
    "achievement_id",
    "guild_id",
    "progress_percentage",
    "unlocked_at",
    "deleted_at",
    "created_at",
)


def select_list(alias: str) -> str:
    """Render the unlock column list qualified by a table alias."""
    return ", ".join(f"{alias}.{column}" for column in UNLOCK_COLUMNS)


def to_unlocks(rows: Iterable[Mapping[str, object]]) -> List[AchievementUnlock]:
    return [AchievementUnlock.model_validate(dict(row)) for row in rows]


class LatestRowStrategy(abc.ABC):
    """
    Common interface for both latest-row strategies.

    Attributes
    ----------
    kind : StrategyKind
        Tag identifying the strategy.
    description : str
        A human-friendly summary of the approach.
    """

    kind: StrategyKind
    description: str

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    @property
    def name(self) -> str:
        return self.kind.value

    @abc.abstractmethod
    def query_text(self) -> str:
        """Return the parameterized SQL this strategy executes."""
        raise NotImplementedError

    @abc.abstractmethod
    def fetch_latest(
        self, guild_id: int, timeout: Optional[float] = None
    ) -> List[AchievementUnlock]:
        """
        Return the latest active unlock of every (player, achievement) group.

        Parameters
        ----------
        guild_id : int
            Scope to evaluate.
        timeout : float | None
            Seconds after which the storage engine aborts the query.

        Raises
        ------
        QueryTimeout
            If `timeout` elapsed before the query finished.
        StorageUnavailable
            If the store failed.
        """
        raise NotImplementedError

    def _run(
        self, sql: str, params: Mapping[str, object], guild_id: int, timeout: Optional[float]
    ) -> List[Row]:
        return self._storage.fetch_all(
            sql,
            params,
            operation=self.kind.name.lower(),
            guild_id=guild_id,
            timeout=timeout,
        )


__all__ = ["LatestRowStrategy", "UNLOCK_COLUMNS", "select_list", "to_unlocks"]
