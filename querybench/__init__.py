"""
Query benchmark for document stores without native cross-collection joins.

This package benchmarks query patterns against a document database by:

- Emulating multi-collection joins with chained single-collection lookups
- Generating realistic, correlated query parameters from previously loaded data
- Measuring per-query latency distributions under repeated, optionally
  concurrent, execution

The engine talks to the database only through the `DataAccess` protocol;
MongoDB (pymongo) and in-memory implementations ship with the package.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from querybench.config import Settings, get_settings
from querybench.domain import ConfigError, QueryConfig, QueryDefinition, load_query_config
from querybench.engine import (
    DataAccess,
    JoinChainOrchestrator,
    LatencyHistogram,
    ParameterGenerator,
    QueryStats,
    ValueStore,
)
from querybench.orchestrator import RunConfig, run_benchmark, run_definitions
from querybench.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    "QueryConfig",
    "QueryDefinition",
    "load_query_config",
    "ConfigError",
    # Engine
    "DataAccess",
    "JoinChainOrchestrator",
    "LatencyHistogram",
    "ParameterGenerator",
    "QueryStats",
    "ValueStore",
    # Running
    "RunConfig",
    "run_benchmark",
    "run_definitions",
    # Logging
    "configure_logging",
    "get_logger",
]
