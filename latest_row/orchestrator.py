"""
Caller-facing API: latest unlocks, strategy selection and benchmarks.

Usage (example from CLI):
    from latest_row.infrastructure import open_storage
    from latest_row.orchestrator import RunConfig, latest_unlocks, run_benchmarks

    with open_storage() as storage:
        rows = latest_unlocks(storage, guild_id=42)
        report = run_benchmarks(storage, RunConfig(guild_id=42, runs=3))

A single benchmark run is the `BenchmarkRunner` primitive. Repeating it and
summarizing the repetitions (median, mean, stddev) happens here.
"""

from __future__ import annotations

import statistics
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from latest_row.benchmark import BenchmarkRunner
from latest_row.config import SelectorThresholds, get_settings
from latest_row.domain.models import AchievementUnlock, BenchmarkResult, StrategyKind
from latest_row.infrastructure.storage import Storage
from latest_row.selector import Selection, StrategySelector
from latest_row.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class RunConfig:
    """
    Parameters for a (possibly repeated) benchmark.

    Attributes
    ----------
    guild_id : int
        Guild to benchmark.
    runs : int | None
        Number of measured benchmark invocations. Defaults to settings.
    warmup : bool | None
        Warm both strategies before each invocation. Defaults to settings.
    join_timeout_seconds : float | None
        Budget for the grouped max join. Defaults to settings.
    """

    guild_id: int
    runs: Optional[int] = None
    warmup: Optional[bool] = None
    join_timeout_seconds: Optional[float] = None


def _round_float(value: float, decimals: int = 4) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _summary(values: List[float]) -> Dict[str, float]:
    return {
        "median": _round_float(statistics.median(values)),
        "mean": _round_float(statistics.mean(values)),
        "stddev": _round_float(statistics.stdev(values)) if len(values) > 1 else 0.0,
        "min": _round_float(min(values)),
        "max": _round_float(max(values)),
    }


def _aggregate_runs(results: List[BenchmarkResult]) -> Dict[str, Any]:
    """
    Aggregate repeated benchmark results into a statistical summary.

    Per strategy: elapsed-time summary, win count and timeout count. Overall:
    the strategy with most wins and the median speedup across runs that
    reported one.
    """
    per_kind: Dict[str, Dict[str, Any]] = {}
    for kind in StrategyKind:
        sides = [
            side
            for result in results
            for side in (result.winner, result.loser)
            if side.kind is kind
        ]
        per_kind[kind.value] = {
            "execution_time": _summary([side.elapsed_seconds for side in sides]),
            "count": next((side.row_count for side in sides if not side.timed_out), 0),
            "wins": sum(1 for result in results if result.winner.kind is kind),
            "timeouts": sum(1 for side in sides if side.timed_out),
        }

    wins = Counter(result.winner.kind.value for result in results)
    speedups = [r.speedup_factor for r in results if r.speedup_factor is not None]
    aggregated: Dict[str, Any] = {
        "guild_id": results[0].guild_id,
        "runs": len(results),
        "strategies": per_kind,
        "overall_winner": wins.most_common(1)[0][0],
        "unlock_count": results[0].unlock_count,
        "eligible_achievements": results[0].eligible_targets,
    }
    if speedups:
        aggregated["speedup"] = _summary(speedups)
    return aggregated


def select_strategy(
    storage: Storage, guild_id: int, thresholds: Optional[SelectorThresholds] = None
) -> Selection:
    """Choose a strategy for `guild_id` without running it."""
    return StrategySelector(storage, thresholds).select(guild_id)


def latest_unlocks(
    storage: Storage, guild_id: int, thresholds: Optional[SelectorThresholds] = None
) -> List[AchievementUnlock]:
    """
    Return the latest active unlock per (player, achievement) for `guild_id`.

    The strategy is chosen by the selector from current table statistics.
    """
    selection = select_strategy(storage, guild_id, thresholds)
    rows = selection.strategy.fetch_latest(guild_id)
    log.info(
        "Fetched latest unlocks",
        extra={
            "guild_id": guild_id,
            "strategy": selection.strategy.name,
            "rows": len(rows),
        },
    )
    return rows


def benchmark(storage: Storage, guild_id: int) -> BenchmarkResult:
    """Run one benchmark of both strategies with configured defaults."""
    return BenchmarkRunner(storage).run(guild_id)


def run_benchmarks(storage: Storage, config: RunConfig) -> Dict[str, Any]:
    """
    Run the benchmark `config.runs` times and summarize.

    Returns
    -------
    dict
        With a single run, the plain benchmark payload. With several, an
        aggregated summary plus every individual payload under
        `individual_runs`.
    """
    settings = get_settings()
    runs = config.runs or settings.benchmark_runs
    runner = BenchmarkRunner(
        storage,
        join_timeout_seconds=config.join_timeout_seconds,
        warmup=config.warmup,
    )

    results: List[BenchmarkResult] = []
    for run_num in range(1, runs + 1):
        log.info(
            f"[RUN {run_num}/{runs}] Benchmarking guild {config.guild_id}",
            extra={"guild_id": config.guild_id, "run": run_num, "total_runs": runs},
        )
        results.append(runner.run(config.guild_id))

    if runs == 1:
        payload = results[0].to_payload()
    else:
        payload = _aggregate_runs(results)
        payload["individual_runs"] = [result.to_payload() for result in results]
        log.info(
            f"[AGGREGATION] {runs} runs for guild {config.guild_id}",
            extra={"guild_id": config.guild_id, "overall_winner": payload["overall_winner"]},
        )
    payload["timestamp"] = datetime.now(timezone.utc).isoformat()
    return payload


__all__ = [
    "RunConfig",
    "benchmark",
    "latest_unlocks",
    "run_benchmarks",
    "select_strategy",
]
