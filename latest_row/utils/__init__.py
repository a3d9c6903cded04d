"""
Utilities package for the latest-row selector.

Exports shared helpers for logging and profiling.
Keep this package lightweight and free of domain-specific logic.
"""

from latest_row.utils.logging import configure_logging, get_logger
from latest_row.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
