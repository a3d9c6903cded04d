"""
Strategies package for the latest-row selector.

Re-exports the abstract interface and both concrete strategies, and maps each
`StrategyKind` to its implementation so callers can build one from a tag.
"""

from __future__ import annotations

from typing import Callable, Dict

from latest_row.domain.models import StrategyKind
from latest_row.infrastructure.storage import Storage
from latest_row.strategies.abstract import LatestRowStrategy
from latest_row.strategies.grouped_max_join import GroupedMaxJoinStrategy
from latest_row.strategies.partitioned_rank import PartitionedRankStrategy

_FACTORIES: Dict[StrategyKind, Callable[[Storage], LatestRowStrategy]] = {
    StrategyKind.GROUPED_MAX_JOIN: GroupedMaxJoinStrategy,
    StrategyKind.PARTITIONED_RANK: PartitionedRankStrategy,
}


def build_strategy(kind: StrategyKind, storage: Storage) -> LatestRowStrategy:
    """Instantiate the strategy tagged `kind` over `storage`."""
    return _FACTORIES[kind](storage)


def available_strategies() -> list[str]:
    """List strategy tags in a stable order."""
    return sorted(kind.value for kind in _FACTORIES)


__all__ = [
    "GroupedMaxJoinStrategy",
    "LatestRowStrategy",
    "PartitionedRankStrategy",
    "available_strategies",
    "build_strategy",
]
