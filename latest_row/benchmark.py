"""
Benchmark runner comparing both latest-row strategies for one guild.

Usage:
    from latest_row.benchmark import BenchmarkRunner

    result = BenchmarkRunner(storage).run(guild_id=42)
    print(result.to_payload())

The two strategies run one after the other on the calling thread so they do
not contend for the same storage resources while being timed. Only the
grouped max join is bounded by a timeout; the ranked partition runs
unbounded. A timed-out strategy is recorded at the timeout ceiling and always
loses.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from latest_row.config import get_settings
from latest_row.domain.models import BenchmarkResult, StrategyKind, StrategyRun
from latest_row.eligibility import EligibilityFilter
from latest_row.errors import LatestRowError, QueryTimeout
from latest_row.infrastructure.storage import Storage
from latest_row.statistics import StatisticsProbe
from latest_row.strategies import LatestRowStrategy
from latest_row.strategies.grouped_max_join import GroupedMaxJoinStrategy
from latest_row.strategies.partitioned_rank import PartitionedRankStrategy
from latest_row.utils.logging import get_logger
from latest_row.utils.profiler import profile_block

log = get_logger(__name__)


def speedup_factor(winner: StrategyRun, loser: StrategyRun) -> Optional[float]:
    """
    Loser time over winner time, rounded to 2 decimals and never below 1.0.

    Returns None when the winner took no measurable time.
    """
    if winner.elapsed_seconds <= 0:
        return None
    return round(max(loser.elapsed_seconds / winner.elapsed_seconds, 1.0), 2)


def rank_runs(runs: Sequence[StrategyRun]) -> Tuple[StrategyRun, StrategyRun]:
    """
    Order two runs into (winner, loser).

    A run that finished beats one that timed out; otherwise the lower
    elapsed time wins and ties go to the run listed first.
    """
    first, second = runs
    if first.timed_out != second.timed_out:
        return (second, first) if first.timed_out else (first, second)
    if second.elapsed_seconds < first.elapsed_seconds:
        return second, first
    return first, second


class BenchmarkRunner:
    """
    Execute both strategies once under timing instrumentation.

    Parameters
    ----------
    storage : Storage
        Adapter both strategies run against.
    join_timeout_seconds : float | None
        Budget for the grouped max join. Defaults to settings.
    warmup : bool | None
        Run each strategy once before measuring. Defaults to settings.
    """

    def __init__(
        self,
        storage: Storage,
        join_timeout_seconds: Optional[float] = None,
        warmup: Optional[bool] = None,
        ranked: Optional[LatestRowStrategy] = None,
        joined: Optional[LatestRowStrategy] = None,
    ) -> None:
        settings = get_settings()
        self._storage = storage
        self.join_timeout_seconds = (
            join_timeout_seconds
            if join_timeout_seconds is not None
            else settings.benchmark_join_timeout_seconds
        )
        self.warmup = settings.benchmark_warmup if warmup is None else warmup
        self._eligibility = EligibilityFilter(storage)
        self._ranked = ranked or PartitionedRankStrategy(storage, self._eligibility)
        self._joined = joined or GroupedMaxJoinStrategy(storage)

    def _timeout_for(self, strategy: LatestRowStrategy) -> Optional[float]:
        if strategy.kind is StrategyKind.GROUPED_MAX_JOIN:
            return self.join_timeout_seconds
        return None

    def _warm(self, guild_id: int) -> None:
        for strategy in (self._ranked, self._joined):
            log.info(f"[WARMUP] {strategy.name}", extra={"guild_id": guild_id})
            try:
                strategy.fetch_latest(guild_id, timeout=self._timeout_for(strategy))
            except LatestRowError as exc:
                log.warning(
                    f"[WARMUP] Failed for {strategy.name}",
                    extra={"guild_id": guild_id, "strategy": strategy.name, "error": str(exc)},
                )

    def _measure(self, strategy: LatestRowStrategy, guild_id: int) -> StrategyRun:
        timeout = self._timeout_for(strategy)
        log.info(f"[STRATEGY START] {strategy.name}", extra={"guild_id": guild_id})
        timed_out: Optional[QueryTimeout] = None
        row_count = 0
        with profile_block(strategy.name) as stats:
            try:
                row_count = len(strategy.fetch_latest(guild_id, timeout=timeout))
            except QueryTimeout as exc:
                timed_out = exc

        if timed_out is not None:
            log.warning(
                f"[STRATEGY TIMEOUT] {strategy.name}",
                extra={"guild_id": guild_id, "timeout": timed_out.timeout_seconds},
            )
            return StrategyRun(
                kind=strategy.kind,
                row_count=0,
                elapsed_seconds=timed_out.timeout_seconds,
                timed_out=True,
                error=str(timed_out),
                peak_rss_bytes=stats.peak_rss_bytes,
                cpu_percent=stats.cpu_percent,
            )

        log.info(
            f"[STRATEGY SUCCESS] {strategy.name}",
            extra={
                "guild_id": guild_id,
                "rows": row_count,
                "elapsed": round(stats.duration_seconds, 4),
            },
        )
        return StrategyRun(
            kind=strategy.kind,
            row_count=row_count,
            elapsed_seconds=stats.duration_seconds,
            peak_rss_bytes=stats.peak_rss_bytes,
            cpu_percent=stats.cpu_percent,
        )

    def run(self, guild_id: int) -> BenchmarkResult:
        """
        Benchmark both strategies for `guild_id`.

        Raises
        ------
        StorageUnavailable
            If the store fails; timeouts never propagate.
        """
        stats = StatisticsProbe(self._storage).compute(guild_id)
        eligible = self._eligibility.resolve(guild_id)

        if self.warmup:
            self._warm(guild_id)

        runs = [self._measure(self._ranked, guild_id), self._measure(self._joined, guild_id)]
        winner, loser = rank_runs(runs)
        result = BenchmarkResult(
            guild_id=guild_id,
            winner=winner,
            loser=loser,
            speedup_factor=speedup_factor(winner, loser),
            unlock_count=stats.total_rows,
            eligible_targets=len(eligible),
        )
        log.info(
            f"[BENCHMARK COMPLETE] {winner.kind.value} beat {loser.kind.value}",
            extra={"guild_id": guild_id, "speedup": result.speedup_factor},
        )
        return result


__all__ = ["BenchmarkRunner", "rank_runs", "speedup_factor"]
