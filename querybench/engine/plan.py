"""
Executable form of a query definition.

A `QueryPlan` wires one `QueryDefinition` to its parameter generator, filter
resolver and join machinery. It is built once per benchmark run and shared by
all worker threads; per-iteration state (correlation scope, missing-field
list) is created by the caller.
"""

from __future__ import annotations

import random
from typing import List, Optional

from querybench.domain.errors import ConfigError, MissingFieldError
from querybench.domain.models import QueryDefinition, RandomChoiceSpec
from querybench.engine.abstract import DataAccess
from querybench.engine.joins import ChainResult, JoinChainOrchestrator, JoinStepExecutor
from querybench.engine.parameters import (
    CorrelationScope,
    ParameterGenerator,
    ValueStore,
    check_correlation_groups,
)
from querybench.engine.templates import FilterTemplateResolver, validate_template


class QueryPlan:
    def __init__(
        self,
        definition: QueryDefinition,
        data_access: DataAccess,
        store: Optional[ValueStore] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.definition = definition
        self.data_access = data_access
        self.generator = ParameterGenerator(definition.parameters, store=store, rng=rng)
        self.resolver = FilterTemplateResolver(self.generator)
        self.executor = JoinStepExecutor(data_access, self.resolver)
        self.orchestrator = JoinChainOrchestrator(self.executor)
        self.head = definition.chain()

    def validate(self) -> None:
        """
        Static checks run before any iteration.

        Raises
        ------
        ConfigError
            On unresolvable placeholders, a parameter that can never produce
            a value, or a correlation group spanning several collections.
        """
        for step in self.head.walk():
            validate_template(step.filter, self.definition.parameters)
        for name, spec in self.definition.parameters.items():
            if isinstance(spec, RandomChoiceSpec) and not spec.values:
                raise ConfigError(f"random_choice parameter '{name}' has no values to choose from")
        check_correlation_groups(self.definition.parameters)

    def run_chain(
        self,
        scope: Optional[CorrelationScope] = None,
        missing: Optional[List[MissingFieldError]] = None,
    ) -> ChainResult:
        if scope is None:
            scope = CorrelationScope()
        return self.orchestrator.run(self.head, scope, missing)

    def execute(
        self,
        scope: Optional[CorrelationScope] = None,
        missing: Optional[List[MissingFieldError]] = None,
    ) -> int:
        """Run the query once with fresh parameters and return the result count."""
        if scope is None:
            scope = CorrelationScope()
        definition = self.definition

        if definition.type == "join":
            return self.run_chain(scope, missing).result_count

        query = self.resolver.resolve(definition.filter, scope, missing) or {}
        if definition.type == "count":
            return self.data_access.count(definition.collection, query)
        return len(self.data_access.find(definition.collection, query, definition.limit))


__all__ = ["QueryPlan"]
