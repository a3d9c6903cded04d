"""
Latest-row selector - adaptive strategy selection for "latest row per group".

Given the soft-deleted, append-mostly `achievement_unlocks` table, this
package decides at runtime between two query strategies for fetching the
latest unlock of every (player, achievement) pair in a guild:

- Grouped max + self-join
- Ranked partition (ROW_NUMBER) over eligible achievements

and benchmarks them against each other with a normalized winner/loser report.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from latest_row.benchmark import BenchmarkRunner
from latest_row.config import SelectorThresholds, Settings, get_settings
from latest_row.domain.models import (
    AchievementUnlock,
    BenchmarkResult,
    Confidence,
    DatasetStatistics,
    StrategyDecision,
    StrategyKind,
    StrategyRun,
)
from latest_row.eligibility import EligibilityFilter
from latest_row.errors import LatestRowError, QueryTimeout, StorageUnavailable
from latest_row.orchestrator import (
    RunConfig,
    benchmark,
    latest_unlocks,
    run_benchmarks,
    select_strategy,
)
from latest_row.selector import Selection, StrategySelector, decide
from latest_row.statistics import StatisticsProbe
from latest_row.strategies import (
    GroupedMaxJoinStrategy,
    LatestRowStrategy,
    PartitionedRankStrategy,
    build_strategy,
)
from latest_row.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "SelectorThresholds",
    "Settings",
    "get_settings",
    # Caller API
    "RunConfig",
    "benchmark",
    "latest_unlocks",
    "run_benchmarks",
    "select_strategy",
    # Core components
    "BenchmarkRunner",
    "EligibilityFilter",
    "Selection",
    "StatisticsProbe",
    "StrategySelector",
    "decide",
    # Strategies
    "GroupedMaxJoinStrategy",
    "LatestRowStrategy",
    "PartitionedRankStrategy",
    "build_strategy",
    # Domain
    "AchievementUnlock",
    "BenchmarkResult",
    "Confidence",
    "DatasetStatistics",
    "StrategyDecision",
    "StrategyKind",
    "StrategyRun",
    # Errors
    "LatestRowError",
    "QueryTimeout",
    "StorageUnavailable",
    # Logging
    "configure_logging",
    "get_logger",
]
