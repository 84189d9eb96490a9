"""
Domain models for the query benchmark.

Query definitions, join chains and parameter specs are loaded once from the
query configuration file and shared read-only by every benchmark iteration.
All models are frozen; the only mutable state is the per-spec call counter of
sequential parameters.
"""

from __future__ import annotations

import itertools
import threading
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr, model_validator
from pydantic.alias_generators import to_camel

_MODEL_CONFIG = {
    "frozen": True,
    "populate_by_name": True,
    "alias_generator": to_camel,
    "extra": "forbid",
}


class FixedSpec(BaseModel):
    """Always yields the configured literal."""

    type: Literal["fixed"]
    value: Any = None

    model_config = _MODEL_CONFIG


class RandomRangeSpec(BaseModel):
    """
    Uniform integer in ``[min, max]`` inclusive.

    With ``value_type="string"`` the integer is rendered zero-padded to the
    width of ``max`` (``0..9999`` yields ``"0042"``); bounds must then be
    non-negative.
    """

    type: Literal["random_range"]
    min: int
    max: int
    value_type: Literal["int", "string"] = "int"

    model_config = _MODEL_CONFIG

    @model_validator(mode="after")
    def _check_bounds(self) -> "RandomRangeSpec":
        if self.min > self.max:
            raise ValueError(f"random_range min ({self.min}) exceeds max ({self.max})")
        if self.value_type == "string" and self.min < 0:
            # Zero padding to the width of max is only fixed-width for non-negative values.
            raise ValueError(f"random_range with valueType 'string' needs min >= 0, got {self.min}")
        return self


class RandomChoiceSpec(BaseModel):
    type: Literal["random_choice"]
    values: List[Any] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class SequentialSpec(BaseModel):
    """
    Sweeps ``min..max`` deterministically across a whole run.

    The call counter is owned by the spec instance and is never reset, so the
    sweep continues across warm-up and measured iterations.
    """

    type: Literal["sequential"]
    min: int
    max: int

    model_config = _MODEL_CONFIG

    _calls: Any = PrivateAttr(default_factory=itertools.count)
    _lock: Any = PrivateAttr(default_factory=threading.Lock)

    @model_validator(mode="after")
    def _check_bounds(self) -> "SequentialSpec":
        if self.min > self.max:
            raise ValueError(f"sequential min ({self.min}) exceeds max ({self.max})")
        return self

    def next_value(self) -> int:
        with self._lock:
            call = next(self._calls)
        return self.min + call % (self.max - self.min + 1)


class RandomPatternSpec(BaseModel):
    r"""String built from a small pattern language, e.g. ``\d{3}-\d{2}-\d{4}``."""

    type: Literal["random_pattern"]
    pattern: str = Field(..., min_length=1)

    model_config = _MODEL_CONFIG


class SampleFromStoreSpec(BaseModel):
    """
    Real value sampled from previously loaded data.

    Specs sharing a ``correlation_group`` read their fields from one sampled
    record per generation call.
    """

    type: Literal["sample_from_store", "random_from_loaded"]
    collection: str
    field: str
    correlation_group: Optional[str] = None

    model_config = _MODEL_CONFIG


ParameterSpec = Annotated[
    Union[
        FixedSpec,
        RandomRangeSpec,
        RandomChoiceSpec,
        SequentialSpec,
        RandomPatternSpec,
        SampleFromStoreSpec,
    ],
    Field(discriminator="type"),
]


class JoinStep(BaseModel):
    """
    One hop of a join chain.

    ``local_field`` is read from the records of the previous hop and
    ``foreign_field`` is matched on this hop's collection. The head of a chain
    (the query's own lookup) carries neither.
    """

    collection: str
    local_field: Optional[str] = None
    foreign_field: Optional[str] = None
    filter: Dict[str, Any] = Field(default_factory=dict)
    limit: int = Field(0, ge=0, description="Maximum records per lookup; 0 means unlimited.")
    next: Optional["JoinStep"] = None

    model_config = _MODEL_CONFIG

    def walk(self) -> Iterator["JoinStep"]:
        step: Optional[JoinStep] = self
        while step is not None:
            yield step
            step = step.next


JoinStep.model_rebuild()


class QueryDefinition(BaseModel):
    """
    A named query to benchmark.

    ``type`` defaults to ``join`` when a ``join`` chain is configured and to
    ``find`` otherwise.
    """

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    collection: str
    type: Literal["find", "count", "join"]
    filter: Dict[str, Any] = Field(default_factory=dict)
    limit: int = Field(0, ge=0)
    parameters: Dict[str, ParameterSpec] = Field(default_factory=dict)
    join: Optional[JoinStep] = None

    model_config = _MODEL_CONFIG

    @model_validator(mode="before")
    @classmethod
    def _infer_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("type") is None:
            data = dict(data)
            data["type"] = "join" if data.get("join") is not None else "find"
        return data

    @model_validator(mode="after")
    def _check_join(self) -> "QueryDefinition":
        if self.type == "join" and self.join is None:
            raise ValueError(f"query '{self.name}' has type 'join' but no join chain")
        if self.type != "join" and self.join is not None:
            raise ValueError(f"query '{self.name}' declares a join chain but has type '{self.type}'")
        if self.join is not None:
            for hop in self.join.walk():
                if not hop.local_field or not hop.foreign_field:
                    raise ValueError(
                        f"join step on '{hop.collection}' in query '{self.name}' "
                        "requires both localField and foreignField"
                    )
        return self

    def chain(self) -> JoinStep:
        """Head step of the lookup chain: this query's own collection and filter."""
        return JoinStep(
            collection=self.collection,
            filter=self.filter,
            limit=self.limit,
            next=self.join,
        )


class QueryExecution(BaseModel):
    iterations: int = Field(10, ge=0)
    warmup_iterations: int = Field(3, ge=0)
    threads: int = Field(1, ge=1)

    model_config = _MODEL_CONFIG


class QueryConfig(BaseModel):
    """Root of a query configuration file."""

    query_execution: QueryExecution = Field(default_factory=QueryExecution)
    queries: List[QueryDefinition] = Field(default_factory=list)

    model_config = _MODEL_CONFIG

    @model_validator(mode="after")
    def _check_unique_names(self) -> "QueryConfig":
        seen: set[str] = set()
        for query in self.queries:
            if query.name in seen:
                raise ValueError(f"duplicate query name '{query.name}'")
            seen.add(query.name)
        return self

    def select(self, name: Optional[str] = None) -> List[QueryDefinition]:
        if name is None:
            return list(self.queries)
        return [q for q in self.queries if q.name == name]


__all__ = [
    "FixedSpec",
    "RandomRangeSpec",
    "RandomChoiceSpec",
    "SequentialSpec",
    "RandomPatternSpec",
    "SampleFromStoreSpec",
    "ParameterSpec",
    "JoinStep",
    "QueryDefinition",
    "QueryExecution",
    "QueryConfig",
]
