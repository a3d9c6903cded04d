from __future__ import annotations

import textwrap
from typing import Any, Dict, Optional, Sequence

from rich import box
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from latest_row.domain.models import AchievementUnlock, Confidence, StrategyDecision


def print_decision(decision: StrategyDecision, console: Optional[Console] = None) -> None:
    """
    Render guild statistics and the selector's decision.
    """
    console = console or Console()
    stats = decision.statistics

    table = Table(title=f"Guild {stats.guild_id} ({stats.size_category})", box=box.ROUNDED)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right", style="magenta")
    table.add_row("Active unlocks", f"{stats.total_active:,}")
    table.add_row("Unique groups", f"{stats.unique_groups:,}")
    table.add_row("Avg duplication", f"{stats.avg_duplication:.2f}")
    table.add_row("Max duplication", f"{stats.max_duplication:,}")
    table.add_row("Strategy", decision.kind.value)
    table.add_row("Rule", decision.rule)

    confidence_style = "red" if decision.confidence is Confidence.LOW else "green"
    table.add_row("Confidence", f"[{confidence_style}]{decision.confidence.value}[/]")
    table.caption = decision.reason
    console.print(table)


def print_unlocks(
    rows: Sequence[AchievementUnlock], limit: Optional[int] = None, console: Optional[Console] = None
) -> None:
    """
    Render latest unlocks ordered by player then achievement.
    """
    console = console or Console()
    if not rows:
        console.print("[yellow]No unlocks to display.[/yellow]")
        return

    ordered = sorted(rows, key=lambda row: row.group_key)
    shown = ordered[:limit] if limit else ordered

    table = Table(
        title="Latest unlocks",
        box=box.ROUNDED,
        caption=f"Showing {len(shown):,} of {len(rows):,}",
    )
    table.add_column("Player", justify="right", style="cyan")
    table.add_column("Achievement", justify="right", style="cyan")
    table.add_column("Unlock id", justify="right", style="magenta")
    table.add_column("Progress", justify="right", style="green")
    table.add_column("Created", style="dim")

    for row in shown:
        progress = "-" if row.progress_percentage is None else f"{row.progress_percentage}%"
        if row.completed:
            progress = f"[bold green]{progress}[/]"
        table.add_row(
            str(row.player_id),
            str(row.achievement_id),
            str(row.id),
            progress,
            row.created_at.isoformat(sep=" ", timespec="seconds"),
        )
    console.print(table)


def print_benchmark(payload: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render a benchmark payload as a rich table.

    Handles both single-run payloads and aggregated multi-run payloads.
    """
    console = console or Console()
    title = (
        f"Guild {payload['guild_id']} | {payload['unlock_count']:,} unlocks | "
        f"{payload['eligible_achievements']:,} eligible achievements"
    )

    if "strategies" in payload:
        table = Table(title=title, box=box.ROUNDED, caption=f"{payload['runs']} runs")
        table.add_column("Strategy", style="cyan", no_wrap=True)
        table.add_column("Rows", justify="right", style="magenta")
        table.add_column("Time (s)\n[dim](Median ± StdDev)[/dim]", justify="right", style="green")
        table.add_column("Wins", justify="right", style="bold green")
        table.add_column("Timeouts", justify="right", style="red")
        for kind, summary in payload["strategies"].items():
            timing = summary["execution_time"]
            table.add_row(
                kind,
                f"{summary['count']:,}",
                f"{timing['median']:.4f} ± {timing['stddev']:.4f}",
                str(summary["wins"]),
                str(summary["timeouts"]),
            )
        console.print(table)
        if "speedup" in payload:
            console.print(
                f"[bold]{payload['overall_winner']}[/bold] wins, median speedup "
                f"[bold green]{payload['speedup']['median']}x[/bold green]"
            )
        return

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("", style="bold")
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column("Time (s)", justify="right", style="green")
    table.add_column("Note", style="red")
    for label in ("winner", "loser"):
        side = payload[label]
        table.add_row(
            label.capitalize(),
            side["type"],
            f"{side['count']:,}",
            f"{side['execution_time']:.4f}",
            side.get("error", ""),
        )
    console.print(table)
    if "speedup" in payload:
        console.print(f"Speedup: [bold green]{payload['speedup']}x[/bold green]")


def print_queries(queries: Dict[str, str], console: Optional[Console] = None) -> None:
    """Render the SQL each strategy runs."""
    console = console or Console()
    for name, sql in queries.items():
        console.rule(f"[cyan]{name}[/cyan]")
        console.print(Syntax(textwrap.dedent(sql).strip(), "sql", word_wrap=True))


__all__ = ["print_benchmark", "print_decision", "print_queries", "print_unlocks"]
