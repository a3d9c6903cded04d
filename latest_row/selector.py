"""
Strategy selector: pick a latest-row strategy from dataset statistics.

The policy is an ordered list of rules; the first rule that matches wins.

0. no groups at all                                     -> GroupedMaxJoin
1. total_active > huge_dataset_rows                     -> PartitionedRank
2. avg_duplication > high_duplication                   -> PartitionedRank
3. total_active > large_dataset_rows
   and avg_duplication > high_duplication               -> PartitionedRank
4. total_active < small_dataset_rows
   and avg_duplication <= low_duplication               -> GroupedMaxJoin
5. anything else                                        -> GroupedMaxJoin, low confidence

Rule 3 can never fire after rule 2; it is kept so the rule table matches the
documented policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from latest_row.config import SelectorThresholds, get_settings
from latest_row.domain.models import (
    Confidence,
    DatasetStatistics,
    StrategyDecision,
    StrategyKind,
)
from latest_row.infrastructure.storage import Storage
from latest_row.statistics import StatisticsProbe
from latest_row.strategies import LatestRowStrategy, build_strategy
from latest_row.utils.logging import get_logger

log = get_logger(__name__)

Predicate = Callable[[DatasetStatistics, SelectorThresholds], bool]


@dataclass(frozen=True)
class Rule:
    name: str
    kind: StrategyKind
    confidence: Confidence
    reason: str
    matches: Predicate


RULES: Tuple[Rule, ...] = (
    Rule(
        "empty",
        StrategyKind.GROUPED_MAX_JOIN,
        Confidence.HIGH,
        "no active groups; nothing to rank",
        lambda s, t: s.unique_groups == 0,
    ),
    Rule(
        "huge_dataset",
        StrategyKind.PARTITIONED_RANK,
        Confidence.HIGH,
        "active rows exceed the huge dataset cutoff",
        lambda s, t: s.total_active > t.huge_dataset_rows,
    ),
    Rule(
        "high_duplication",
        StrategyKind.PARTITIONED_RANK,
        Confidence.HIGH,
        "rows per group exceed the high duplication cutoff",
        lambda s, t: s.avg_duplication > t.high_duplication,
    ),
    Rule(
        "large_and_duplicated",
        StrategyKind.PARTITIONED_RANK,
        Confidence.HIGH,
        "large dataset with high duplication",
        lambda s, t: s.total_active > t.large_dataset_rows
        and s.avg_duplication > t.high_duplication,
    ),
    Rule(
        "small_and_sparse",
        StrategyKind.GROUPED_MAX_JOIN,
        Confidence.HIGH,
        "small dataset with few rows per group",
        lambda s, t: s.total_active < t.small_dataset_rows
        and s.avg_duplication <= t.low_duplication,
    ),
    Rule(
        "requires_testing",
        StrategyKind.GROUPED_MAX_JOIN,
        Confidence.LOW,
        "no rule matched; benchmark this guild to confirm",
        lambda s, t: True,
    ),
)


@dataclass(frozen=True)
class Selection:
    """A ready-to-run strategy together with the decision that produced it."""

    strategy: LatestRowStrategy
    decision: StrategyDecision


def decide(
    stats: DatasetStatistics, thresholds: Optional[SelectorThresholds] = None
) -> StrategyDecision:
    """
    Apply the rule table to `stats`. Pure; touches no storage.
    """
    thresholds = thresholds or get_settings().selector_thresholds()
    rule = next(rule for rule in RULES if rule.matches(stats, thresholds))
    return StrategyDecision(
        kind=rule.kind,
        confidence=rule.confidence,
        rule=rule.name,
        reason=rule.reason,
        statistics=stats,
    )


class StrategySelector:
    """
    Choose between the two strategies for a guild.

    Parameters
    ----------
    storage : Storage
        Adapter the probe and the chosen strategy run against.
    thresholds : SelectorThresholds | None
        Rule cutoffs; defaults to the configured ones.
    """

    def __init__(
        self,
        storage: Storage,
        thresholds: Optional[SelectorThresholds] = None,
        probe: Optional[StatisticsProbe] = None,
    ) -> None:
        self._storage = storage
        self._thresholds = thresholds or get_settings().selector_thresholds()
        self._probe = probe or StatisticsProbe(storage)

    @property
    def rules(self) -> List[Rule]:
        return list(RULES)

    def decide(self, guild_id: int) -> StrategyDecision:
        return decide(self._probe.compute(guild_id), self._thresholds)

    def select(self, guild_id: int) -> Selection:
        decision = self.decide(guild_id)
        level = log.warning if decision.confidence is Confidence.LOW else log.info
        level(
            f"[SELECTOR] {decision.kind.value} via rule '{decision.rule}'",
            extra={
                "guild_id": guild_id,
                "strategy": decision.kind.value,
                "rule": decision.rule,
                "confidence": decision.confidence.value,
                "total_active": decision.statistics.total_active,
                "avg_duplication": round(decision.statistics.avg_duplication, 2),
            },
        )
        return Selection(strategy=build_strategy(decision.kind, self._storage), decision=decision)


__all__ = ["RULES", "Rule", "Selection", "StrategySelector", "decide"]
