"""
Domain package for the query benchmark.

Exports the configuration models, the error taxonomy and the configuration
loader. Keep this package free of I/O beyond reading configuration files.
"""

from querybench.domain.errors import (
    BenchmarkError,
    ConfigError,
    DataAccessError,
    EmptyParameterSetError,
    MissingFieldError,
    NotConfiguredError,
    UnknownParameterError,
)
from querybench.domain.loader import load_query_config, parse_query_config
from querybench.domain.models import (
    JoinStep,
    ParameterSpec,
    QueryConfig,
    QueryDefinition,
    QueryExecution,
    SampleFromStoreSpec,
    SequentialSpec,
)

__all__ = [
    "BenchmarkError",
    "ConfigError",
    "DataAccessError",
    "EmptyParameterSetError",
    "MissingFieldError",
    "NotConfiguredError",
    "UnknownParameterError",
    "load_query_config",
    "parse_query_config",
    "JoinStep",
    "ParameterSpec",
    "QueryConfig",
    "QueryDefinition",
    "QueryExecution",
    "SampleFromStoreSpec",
    "SequentialSpec",
]
