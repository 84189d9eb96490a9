"""
Parameter generation for benchmark queries.

Turns a `ParameterSpec` into a concrete value for one iteration. Most kinds
are self-contained (fixed, random range, random choice, sequential, random
pattern); ``sample_from_store`` draws real values from a `ValueStore` loaded
once before the benchmark starts, so composite filters such as
"date of birth + full name" actually match existing documents.

Correlation groups bind one sampled record per generation call: every
parameter tagged with the same group reads its field from that record. The
binding lives in a `CorrelationScope` created by the caller for each
iteration and passed explicitly down the call stack.
"""

from __future__ import annotations

import random
import re
import string
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from querybench.domain.errors import (
    ConfigError,
    EmptyParameterSetError,
    MissingFieldError,
    NotConfiguredError,
    UnknownParameterError,
)
from querybench.domain.models import (
    FixedSpec,
    ParameterSpec,
    RandomChoiceSpec,
    RandomPatternSpec,
    RandomRangeSpec,
    SampleFromStoreSpec,
    SequentialSpec,
)
from querybench.engine.abstract import DataAccess, Document
from querybench.engine.paths import extract_values
from querybench.utils.logging import get_logger

log = get_logger(__name__)

_PATTERN_TOKEN = re.compile(r"(\\d|\[0-9\]|\[A-Z\]|\[a-z\]|\[A-Za-z\])(?:\{(\d+)\})?")
_PATTERN_ALPHABETS = {
    "\\d": string.digits,
    "[0-9]": string.digits,
    "[A-Z]": string.ascii_uppercase,
    "[a-z]": string.ascii_lowercase,
    "[A-Za-z]": string.ascii_letters,
}


class ValuePool:
    """
    Previously observed values for one (collection, field) pair.

    Built once before benchmarking and never mutated afterwards, so worker
    threads share it without locking.
    """

    __slots__ = ("collection", "field", "_values")

    def __init__(self, collection: str, field: str, values: Iterable[Any]) -> None:
        self.collection = collection
        self.field = field
        self._values: Tuple[Any, ...] = tuple(values)

    @property
    def values(self) -> Tuple[Any, ...]:
        return self._values

    def __len__(self) -> int:
        return len(self._values)

    def sample(self, rng: random.Random) -> Any:
        if not self._values:
            raise ConfigError(f"value pool {self.collection}.{self.field} is empty")
        return rng.choice(self._values)

    def __repr__(self) -> str:
        return f"ValuePool({self.collection}.{self.field}, size={len(self)})"


class ValueStore:
    """
    Value pools and correlation records, keyed by collection (and field).

    Loading happens through `ensure`, which only fetches what is not already
    present; call it before any iteration runs.
    """

    def __init__(self) -> None:
        self._pools: Dict[Tuple[str, str], ValuePool] = {}
        self._records: Dict[str, Tuple[Document, ...]] = {}

    def add_values(self, collection: str, field: str, values: Iterable[Any]) -> ValuePool:
        pool = ValuePool(collection, field, values)
        self._pools[(collection, field)] = pool
        return pool

    def add_records(self, collection: str, records: Iterable[Document]) -> None:
        self._records[collection] = tuple(records)

    def pool(self, collection: str, field: str) -> ValuePool:
        try:
            return self._pools[(collection, field)]
        except KeyError:
            raise NotConfiguredError(
                f"no value pool loaded for {collection}.{field}"
            ) from None

    def records(self, collection: str) -> Tuple[Document, ...]:
        try:
            return self._records[collection]
        except KeyError:
            raise NotConfiguredError(
                f"no correlation records loaded for collection '{collection}'"
            ) from None

    def sample_record(self, collection: str, rng: random.Random) -> Document:
        records = self.records(collection)
        if not records:
            raise ConfigError(f"no records available in '{collection}' for correlated parameters")
        return rng.choice(records)

    def has_pool(self, collection: str, field: str) -> bool:
        return (collection, field) in self._pools

    def has_records(self, collection: str) -> bool:
        return collection in self._records

    def ensure(
        self,
        data_access: Optional[DataAccess],
        specs: Iterable[ParameterSpec],
        sample_size: int,
    ) -> None:
        """
        Load every pool the given specs need and is not loaded yet.

        Raises
        ------
        NotConfiguredError
            If a store-backed spec exists but no collaborator was supplied.
        ConfigError
            If a pool or record sample comes back empty.
        DataAccessError
            If the collaborator fails while sampling.
        """
        for spec in specs:
            if not isinstance(spec, SampleFromStoreSpec):
                continue
            if data_access is None:
                raise NotConfiguredError(
                    f"sample_from_store on {spec.collection}.{spec.field} needs a data-access "
                    "collaborator"
                )
            if spec.correlation_group is not None:
                if self.has_records(spec.collection):
                    continue
                records = data_access.sample_records(spec.collection, sample_size)
                if not records:
                    raise ConfigError(
                        f"no documents found in '{spec.collection}' for correlation group "
                        f"'{spec.correlation_group}'"
                    )
                self.add_records(spec.collection, records)
                log.info(
                    f"Loaded {len(records)} correlation records from {spec.collection}",
                    extra={"collection": spec.collection, "records": len(records)},
                )
            else:
                if self.has_pool(spec.collection, spec.field):
                    continue
                values = data_access.sample_field(spec.collection, spec.field, sample_size)
                if not values:
                    raise ConfigError(f"no values found for {spec.field} in '{spec.collection}'")
                self.add_values(spec.collection, spec.field, values)
                log.info(
                    f"Loaded {len(values)} sample values for {spec.collection}.{spec.field}",
                    extra={"collection": spec.collection, "field": spec.field, "values": len(values)},
                )


class CorrelationScope:
    """
    Correlation-group bindings for a single generation call.

    Create one per iteration and drop it afterwards; nothing carries over.
    """

    __slots__ = ("_bindings",)

    def __init__(self) -> None:
        self._bindings: Dict[str, Document] = {}

    def get(self, group: str) -> Optional[Document]:
        return self._bindings.get(group)

    def bind(self, group: str, record: Document) -> None:
        self._bindings[group] = record

    def __contains__(self, group: object) -> bool:
        return group in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)


def check_correlation_groups(specs: Mapping[str, ParameterSpec]) -> None:
    """
    Reject correlation groups whose members sample different collections.

    Raises
    ------
    ConfigError
        Naming the group and the collections it spans.
    """
    groups: Dict[str, Dict[str, str]] = {}
    for name, spec in specs.items():
        if isinstance(spec, SampleFromStoreSpec) and spec.correlation_group is not None:
            groups.setdefault(spec.correlation_group, {})[name] = spec.collection
    for group, members in groups.items():
        collections = sorted(set(members.values()))
        if len(collections) > 1:
            raise ConfigError(
                f"correlation group '{group}' spans collections {', '.join(collections)} "
                f"(parameters: {', '.join(sorted(members))}); a group must read one collection"
            )


def render_pattern(pattern: str, rng: random.Random) -> str:
    r"""
    Expand ``\d``, ``[0-9]``, ``[A-Z]``, ``[a-z]`` and ``[A-Za-z]`` tokens,
    each optionally repeated with ``{n}``. Everything else is literal.
    """
    out: List[str] = []
    pos = 0
    while pos < len(pattern):
        match = _PATTERN_TOKEN.match(pattern, pos)
        if match is None:
            out.append(pattern[pos])
            pos += 1
            continue
        alphabet = _PATTERN_ALPHABETS[match.group(1)]
        count = int(match.group(2)) if match.group(2) else 1
        out.extend(rng.choice(alphabet) for _ in range(count))
        pos = match.end()
    return "".join(out)


class ParameterGenerator:
    """
    Resolves named parameter specs into concrete values.

    Thread-safe: the only shared mutable state are the sequential counters,
    which lock internally, and the random source.
    """

    def __init__(
        self,
        specs: Mapping[str, ParameterSpec],
        store: Optional[ValueStore] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._specs = dict(specs)
        self._store = store
        self._rng = rng or random.Random()

    @property
    def specs(self) -> Mapping[str, ParameterSpec]:
        return self._specs

    @property
    def store(self) -> Optional[ValueStore]:
        return self._store

    def spec(self, name: str) -> ParameterSpec:
        if not self._specs:
            raise EmptyParameterSetError(name)
        try:
            return self._specs[name]
        except KeyError:
            raise UnknownParameterError(name) from None

    def generate(self, name: str, scope: CorrelationScope) -> Any:
        """Generate a value for the parameter called ``name``."""
        return self.generate_spec(self.spec(name), scope, name=name)

    def generate_spec(
        self, spec: ParameterSpec, scope: CorrelationScope, name: Optional[str] = None
    ) -> Any:
        if isinstance(spec, FixedSpec):
            return spec.value
        if isinstance(spec, RandomRangeSpec):
            value = self._rng.randint(spec.min, spec.max)
            if spec.value_type == "string":
                return str(value).zfill(len(str(spec.max)))
            return value
        if isinstance(spec, RandomChoiceSpec):
            if not spec.values:
                raise ConfigError(f"random_choice parameter '{name}' has no values to choose from")
            return self._rng.choice(spec.values)
        if isinstance(spec, SequentialSpec):
            return spec.next_value()
        if isinstance(spec, RandomPatternSpec):
            return render_pattern(spec.pattern, self._rng)
        if isinstance(spec, SampleFromStoreSpec):
            return self._sample(spec, scope, name)
        raise ConfigError(f"unsupported parameter type for '{name}': {type(spec).__name__}")

    def _sample(self, spec: SampleFromStoreSpec, scope: CorrelationScope, name: Optional[str]) -> Any:
        if self._store is None:
            raise NotConfiguredError(
                f"parameter '{name}' samples from {spec.collection}.{spec.field} "
                "but no value store was supplied"
            )

        group = spec.correlation_group
        if group is None:
            return self._store.pool(spec.collection, spec.field).sample(self._rng)

        record = scope.get(group)
        if record is None:
            record = self._store.sample_record(spec.collection, self._rng)
            scope.bind(group, record)
            log.debug(
                f"Bound correlation group '{group}'",
                extra={"group": group, "collection": spec.collection, "record_id": record.get("_id")},
            )
        return self._pick(extract_values(record, spec.field), spec.field, name)

    def _pick(self, values: Sequence[Any], field: str, name: Optional[str]) -> Any:
        if not values:
            raise MissingFieldError(field, name)
        if len(values) == 1:
            return values[0]
        return self._rng.choice(values)


__all__ = [
    "ValuePool",
    "ValueStore",
    "CorrelationScope",
    "ParameterGenerator",
    "check_correlation_groups",
    "render_pattern",
]
