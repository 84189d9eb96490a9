"""
Utilities package for the query benchmark.

Shared helpers for logging and profiling. Keep this package free of
benchmark-specific logic.
"""

from querybench.utils.logging import configure_logging, get_logger
from querybench.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
