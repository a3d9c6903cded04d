"""
Domain models for the latest-row selector.

Defines the `achievement_unlocks` row schema (aligned with `db/init.sql`), the
statistics snapshot consumed by the selector, the selector's decision, and the
immutable benchmark report.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, computed_field

_FROZEN = {
    "frozen": True,
    "populate_by_name": True,
    "arbitrary_types_allowed": False,
}


class StrategyKind(str, Enum):
    """Closed set of latest-row strategies."""

    GROUPED_MAX_JOIN = "GroupedMaxJoin"
    PARTITIONED_RANK = "PartitionedRank"


class Confidence(str, Enum):
    HIGH = "high"
    LOW = "low"


class AchievementUnlock(BaseModel):
    """
    Representation of a single row in the `achievement_unlocks` table.
    """

    id: int = Field(..., description="Primary key; monotonically increasing.")
    player_id: int = Field(..., description="Actor that made the attempt.")
    achievement_id: int = Field(..., description="Target of the attempt.")
    guild_id: int = Field(..., description="Scope the attempt belongs to.")
    progress_percentage: Optional[int] = Field(None, ge=0, le=100)
    unlocked_at: Optional[datetime] = Field(None)
    deleted_at: Optional[datetime] = Field(None, description="Soft-delete marker.")
    created_at: datetime = Field(..., description="Row creation timestamp.")

    model_config = _FROZEN

    @property
    def group_key(self) -> tuple[int, int]:
        return (self.player_id, self.achievement_id)

    @property
    def completed(self) -> bool:
        return self.progress_percentage == 100


class DatasetStatistics(BaseModel):
    """
    Read-only snapshot of active-row statistics for one guild.
    """

    guild_id: int
    total_rows: int = Field(0, description="All rows of the guild, soft-deleted included.")
    total_active: int = 0
    unique_groups: int = 0
    avg_duplication: float = 0.0
    max_duplication: int = 0

    model_config = _FROZEN

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size_category(self) -> str:
        if self.total_active <= 100:
            return "Small"
        if self.total_active <= 1_000:
            return "Medium"
        if self.total_active <= 10_000:
            return "Large"
        return "Mega"


class StrategyDecision(BaseModel):
    """Outcome of the selector policy for one guild."""

    kind: StrategyKind
    confidence: Confidence
    rule: str
    reason: str
    statistics: DatasetStatistics

    model_config = _FROZEN


class StrategyRun(BaseModel):
    """One measured side of a benchmark."""

    kind: StrategyKind
    row_count: int = 0
    elapsed_seconds: float = 0.0
    timed_out: bool = False
    error: Optional[str] = None
    peak_rss_bytes: Optional[int] = None
    cpu_percent: Optional[float] = None

    model_config = _FROZEN

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "count": self.row_count,
            "execution_time": round(self.elapsed_seconds, 4),
            "type": self.kind.value,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


class BenchmarkResult(BaseModel):
    """
    Normalized comparison of both strategies for one guild.
    """

    guild_id: int
    winner: StrategyRun
    loser: StrategyRun
    speedup_factor: Optional[float] = None
    unlock_count: int = 0
    eligible_targets: int = 0

    model_config = _FROZEN

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the wire shape consumed by UI and CLI callers."""
        payload: Dict[str, Any] = {
            "winner": self.winner.to_payload(),
            "loser": self.loser.to_payload(),
            "guild_id": self.guild_id,
            "unlock_count": self.unlock_count,
            "eligible_achievements": self.eligible_targets,
        }
        if self.speedup_factor is not None:
            payload["speedup"] = self.speedup_factor
        return payload


__all__ = [
    "AchievementUnlock",
    "BenchmarkResult",
    "Confidence",
    "DatasetStatistics",
    "StrategyDecision",
    "StrategyKind",
    "StrategyRun",
]
