"""
Domain package for the latest-row selector.

Exports the core domain models used across strategies, the selector and the
benchmark runner. Keep this package focused on data definitions.
"""

from latest_row.domain.models import (
    AchievementUnlock,
    BenchmarkResult,
    Confidence,
    DatasetStatistics,
    StrategyDecision,
    StrategyKind,
    StrategyRun,
)

__all__ = [
    "AchievementUnlock",
    "BenchmarkResult",
    "Confidence",
    "DatasetStatistics",
    "StrategyDecision",
    "StrategyKind",
    "StrategyRun",
]
