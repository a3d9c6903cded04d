from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import typer

from latest_row.config import get_settings
from latest_row.domain.models import StrategyKind
from latest_row.eligibility import EligibilityFilter
from latest_row.errors import StorageUnavailable
from latest_row.infrastructure.db_factory import open_storage
from latest_row.infrastructure.storage import Storage
from latest_row.orchestrator import RunConfig, run_benchmarks, select_strategy
from latest_row.reporter import print_benchmark, print_decision, print_queries, print_unlocks
from latest_row.statistics import StatisticsProbe
from latest_row.strategies import available_strategies, build_strategy
from latest_row.utils.logging import configure_logging

app = typer.Typer(help="Latest-unlock strategy selector and benchmark CLI.")

AUTO = "auto"


@contextmanager
def _storage() -> Iterator[Storage]:
    """
    Configure logging and open storage; report storage failures as JSON on stderr.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        with open_storage(settings) as storage:
            yield storage
    except StorageUnavailable as exc:
        typer.echo(json.dumps(exc.to_dict()), err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    if settings.db_backend == "sqlite":
        target = f"sqlite:{settings.sqlite_path}"
    else:
        target = f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    thresholds = settings.selector_thresholds()
    typer.echo(
        f"DB={target} | join_timeout={settings.benchmark_join_timeout_seconds}s "
        f"warmup={settings.benchmark_warmup} runs={settings.benchmark_runs} | "
        f"huge>{thresholds.huge_dataset_rows} large>{thresholds.large_dataset_rows} "
        f"small<{thresholds.small_dataset_rows} dup>{thresholds.high_duplication} "
        f"sparse<={thresholds.low_duplication}"
    )


@app.command()
def stats(guild_id: int = typer.Argument(..., help="Guild to inspect.")) -> None:
    """
    Print active-row statistics for a guild as JSON.
    """
    with _storage() as storage:
        snapshot = StatisticsProbe(storage).compute(guild_id)
    typer.echo(snapshot.model_dump_json(indent=2))


@app.command()
def select(
    guild_id: int = typer.Argument(..., help="Guild to inspect."),
    as_json: bool = typer.Option(False, "--json", help="Emit the decision as JSON."),
) -> None:
    """
    Show which strategy the selector picks for a guild, and why.
    """
    with _storage() as storage:
        decision = select_strategy(storage, guild_id).decision
    if as_json:
        typer.echo(decision.model_dump_json(indent=2))
    else:
        print_decision(decision)


@app.command()
def latest(
    guild_id: int = typer.Argument(..., help="Guild to query."),
    strategy: str = typer.Option(
        AUTO,
        "--strategy",
        "-s",
        help=f"Strategy to run ({AUTO}, {', '.join(available_strategies())}).",
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", help="Show at most this many rows."
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit rows as JSON."),
) -> None:
    """
    Fetch the latest unlock per player and achievement for a guild.
    """
    if strategy != AUTO and strategy not in available_strategies():
        raise typer.BadParameter(
            f"Unknown strategy '{strategy}'. Available: {AUTO}, {', '.join(available_strategies())}",
            param_hint="--strategy",
        )

    with _storage() as storage:
        if strategy == AUTO:
            chosen = select_strategy(storage, guild_id).strategy
        else:
            chosen = build_strategy(StrategyKind(strategy), storage)
        rows = chosen.fetch_latest(guild_id)

    if as_json:
        ordered = sorted(rows, key=lambda row: row.group_key)
        shown = ordered[:limit] if limit else ordered
        typer.echo(json.dumps([row.model_dump(mode="json") for row in shown], indent=2))
    else:
        typer.echo(f"Strategy: {chosen.name}")
        print_unlocks(rows, limit=limit)


@app.command()
def benchmark(
    guild_id: int = typer.Argument(..., help="Guild to benchmark."),
    runs: Optional[int] = typer.Option(
        None, "--runs", "-r", min=1, help="Measured runs (default from settings)."
    ),
    warmup: Optional[bool] = typer.Option(
        None, "--warmup/--no-warmup", help="Warm both strategies before measuring."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", min=0.001, help="Grouped max join timeout in seconds."
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit the report as JSON."),
) -> None:
    """
    Benchmark both strategies for a guild and report the winner.
    """
    config = RunConfig(
        guild_id=guild_id, runs=runs, warmup=warmup, join_timeout_seconds=timeout
    )
    with _storage() as storage:
        payload = run_benchmarks(storage, config)
    if as_json:
        typer.echo(json.dumps(payload, indent=2))
    else:
        print_benchmark(payload)


@app.command()
def explain() -> None:
    """
    Print the parameterized SQL behind the probe, the filter and both strategies.
    """
    with _storage() as storage:
        queries = {
            "StatisticsProbe": StatisticsProbe(storage).query_text(),
            "EligibilityFilter": EligibilityFilter(storage).query_text(),
        }
        for kind in StrategyKind:
            queries[kind.value] = build_strategy(kind, storage).query_text()
    print_queries(queries)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
