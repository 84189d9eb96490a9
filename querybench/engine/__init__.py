"""
Query engine for the benchmark.

Parameter generation, filter-template resolution, client-side join chains and
latency recording. The engine reaches the database only through the
`DataAccess` protocol.
"""

from querybench.engine.abstract import DataAccess, Document
from querybench.engine.joins import (
    ChainResult,
    JoinChainOrchestrator,
    JoinStepExecutor,
    StepResult,
)
from querybench.engine.metrics import (
    IterationOutcome,
    LatencyHistogram,
    Outcome,
    QueryRecorder,
    QueryStats,
)
from querybench.engine.parameters import (
    CorrelationScope,
    ParameterGenerator,
    ValuePool,
    ValueStore,
)
from querybench.engine.paths import extract_values
from querybench.engine.plan import QueryPlan
from querybench.engine.templates import FilterTemplateResolver, validate_template

__all__ = [
    # Contract
    "DataAccess",
    "Document",
    # Parameters
    "CorrelationScope",
    "ParameterGenerator",
    "ValuePool",
    "ValueStore",
    "extract_values",
    # Templates
    "FilterTemplateResolver",
    "validate_template",
    # Joins
    "ChainResult",
    "JoinChainOrchestrator",
    "JoinStepExecutor",
    "StepResult",
    "QueryPlan",
    # Metrics
    "IterationOutcome",
    "LatencyHistogram",
    "Outcome",
    "QueryRecorder",
    "QueryStats",
]
