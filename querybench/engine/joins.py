"""
Client-side joins over a document store without cross-collection joins.

A join chain is a singly linked list of `JoinStep`. Each hop runs one filtered
lookup on its collection, restricted to documents whose ``foreign_field`` is
in the key set produced by the previous hop, then extracts the next hop's
``local_field`` from every match to build the key set for the hop after it.

The walk is forward-only. A hop that matches nothing (or yields no linking
keys) ends the chain with an empty result; earlier hops are never revisited
to try other candidates. So "phone found but no identity with that SSN" is a
legitimate zero-row answer, not an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from querybench.domain.errors import MissingFieldError
from querybench.domain.models import JoinStep
from querybench.engine.abstract import DataAccess, Document
from querybench.engine.parameters import CorrelationScope
from querybench.engine.paths import extract_values, unique
from querybench.engine.templates import FilterTemplateResolver
from querybench.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one hop."""

    collection: str
    filter: Document
    records: List[Document]
    outbound_keys: List[Any]


@dataclass
class ChainResult:
    """
    Final records of a chain plus the per-hop trail.

    ``completed`` is False when an intermediate hop came back empty and the
    remaining hops were skipped.
    """

    records: List[Document] = field(default_factory=list)
    hops: List[StepResult] = field(default_factory=list)
    completed: bool = True

    @property
    def empty(self) -> bool:
        return not self.records

    @property
    def result_count(self) -> int:
        return len(self.records)


class JoinStepExecutor:
    """
    Builds the filter for one hop, delegates the lookup and post-processes the
    result. Issues no I/O of its own beyond the collaborator call.
    """

    def __init__(self, data_access: DataAccess, resolver: FilterTemplateResolver) -> None:
        self.data_access = data_access
        self.resolver = resolver

    def build_filter(
        self,
        step: JoinStep,
        inbound_keys: Optional[Sequence[Any]],
        scope: CorrelationScope,
        missing: Optional[List[MissingFieldError]] = None,
    ) -> Document:
        resolved = self.resolver.resolve(step.filter, scope, missing) or {}
        if not inbound_keys or not step.foreign_field:
            return resolved

        clause = {step.foreign_field: {"$in": list(inbound_keys)}}
        if step.foreign_field in resolved:
            # Keep both conditions on the same field instead of overwriting one.
            return {"$and": [resolved, clause]}
        return {**resolved, **clause}

    def execute(
        self,
        step: JoinStep,
        inbound_keys: Optional[Sequence[Any]],
        scope: CorrelationScope,
        missing: Optional[List[MissingFieldError]] = None,
    ) -> StepResult:
        query = self.build_filter(step, inbound_keys, scope, missing)
        records = self.data_access.find(step.collection, query, step.limit)

        outbound: List[Any] = []
        if step.next is not None and records:
            link_field = step.next.local_field
            outbound = unique(
                value for record in records for value in extract_values(record, link_field)
            )

        log.debug(
            f"Join hop on {step.collection}: {len(records)} records, {len(outbound)} keys",
            extra={
                "collection": step.collection,
                "records": len(records),
                "outbound_keys": len(outbound),
                "inbound_keys": len(inbound_keys or ()),
            },
        )
        return StepResult(
            collection=step.collection,
            filter=query,
            records=records,
            outbound_keys=outbound,
        )


class JoinChainOrchestrator:
    """Walks a join chain from its head, threading key sets between hops."""

    def __init__(self, executor: JoinStepExecutor) -> None:
        self.executor = executor

    def run(
        self,
        head: JoinStep,
        scope: CorrelationScope,
        missing: Optional[List[MissingFieldError]] = None,
    ) -> ChainResult:
        result = ChainResult()
        inbound: Optional[List[Any]] = None
        step: Optional[JoinStep] = head

        while step is not None:
            hop = self.executor.execute(step, inbound, scope, missing)
            result.hops.append(hop)

            if step.next is None:
                result.records = hop.records
                return result

            if not hop.records or not hop.outbound_keys:
                log.debug(
                    f"Join chain stopped at {step.collection}: no linking keys",
                    extra={"collection": step.collection, "hop": len(result.hops)},
                )
                result.completed = False
                return result

            inbound = hop.outbound_keys
            step = step.next

        return result


__all__ = [
    "StepResult",
    "ChainResult",
    "JoinStepExecutor",
    "JoinChainOrchestrator",
]
