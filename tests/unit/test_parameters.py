from __future__ import annotations

import random
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List

import pytest

from querybench.domain.errors import (
    ConfigError,
    EmptyParameterSetError,
    MissingFieldError,
    NotConfiguredError,
    UnknownParameterError,
)
from querybench.domain.models import (
    FixedSpec,
    QueryDefinition,
    RandomChoiceSpec,
    RandomPatternSpec,
    RandomRangeSpec,
    SampleFromStoreSpec,
    SequentialSpec,
)
from querybench.engine.parameters import (
    CorrelationScope,
    ParameterGenerator,
    ValueStore,
    check_correlation_groups,
    render_pattern,
)
from querybench.engine.plan import QueryPlan
from querybench.infrastructure.memory import InMemoryDataAccess

RANGE_DRAWS = 10_000
SEQUENTIAL_CALLS_PER_WORKER = 250
SEQUENTIAL_WORKERS = 8


def _generator(specs: Dict[str, Any], store: ValueStore | None = None, seed: int = 7) -> ParameterGenerator:
    return ParameterGenerator(specs, store=store, rng=random.Random(seed))


def test_fixed_yields_literal() -> None:
    gen = _generator({"status": FixedSpec(type="fixed", value="ACTIVE")})

    assert gen.generate("status", CorrelationScope()) == "ACTIVE"


def test_random_range_stays_within_inclusive_bounds() -> None:
    gen = _generator({"n": RandomRangeSpec(type="random_range", min=1, max=5)})
    scope = CorrelationScope()

    draws = {gen.generate("n", scope) for _ in range(RANGE_DRAWS)}

    assert draws == {1, 2, 3, 4, 5}


def test_random_range_single_point() -> None:
    gen = _generator({"n": RandomRangeSpec(type="random_range", min=42, max=42)})

    assert gen.generate("n", CorrelationScope()) == 42


def test_random_range_string_is_zero_padded_to_max_width() -> None:
    gen = _generator({"last4": RandomRangeSpec(type="random_range", min=0, max=9999, value_type="string")})
    scope = CorrelationScope()

    values = [gen.generate("last4", scope) for _ in range(500)]

    assert all(isinstance(v, str) and len(v) == 4 and v.isdigit() for v in values)
    assert all(0 <= int(v) <= 9999 for v in values)


def test_random_range_rejects_inverted_bounds() -> None:
    with pytest.raises(ValueError, match="exceeds max"):
        RandomRangeSpec(type="random_range", min=10, max=1)


def test_random_choice_draws_from_values() -> None:
    gen = _generator({"kind": RandomChoiceSpec(type="random_choice", values=["MOBILE", "HOME"])})
    scope = CorrelationScope()

    assert {gen.generate("kind", scope) for _ in range(200)} == {"MOBILE", "HOME"}


def test_random_choice_with_no_values_is_config_error() -> None:
    gen = _generator({"kind": RandomChoiceSpec(type="random_choice", values=[])})

    with pytest.raises(ConfigError, match="no values"):
        gen.generate("kind", CorrelationScope())


def test_sequential_cycles_through_range() -> None:
    gen = _generator({"seq": SequentialSpec(type="sequential", min=1, max=3)})
    scope = CorrelationScope()

    assert [gen.generate("seq", scope) for _ in range(4)] == [1, 2, 3, 1]


def test_sequential_counter_is_per_spec_instance() -> None:
    first = SequentialSpec(type="sequential", min=10, max=12)
    second = SequentialSpec(type="sequential", min=10, max=12)

    assert [first.next_value() for _ in range(2)] == [10, 11]
    assert second.next_value() == 10


def test_sequential_is_atomic_under_concurrency() -> None:
    span = 5
    spec = SequentialSpec(type="sequential", min=0, max=span - 1)

    def draw() -> List[int]:
        return [spec.next_value() for _ in range(SEQUENTIAL_CALLS_PER_WORKER)]

    with ThreadPoolExecutor(max_workers=SEQUENTIAL_WORKERS) as pool:
        batches = list(pool.map(lambda _: draw(), range(SEQUENTIAL_WORKERS)))

    values = [v for batch in batches for v in batch]
    total = SEQUENTIAL_CALLS_PER_WORKER * SEQUENTIAL_WORKERS
    # No call index was handed out twice, so each residue appears equally often.
    for residue in range(span):
        assert values.count(residue) == total // span


@pytest.mark.parametrize(
    ("pattern", "regex"),
    [
        (r"\d{3}-\d{2}-\d{4}", r"^\d{3}-\d{2}-\d{4}$"),
        ("[A-Z]{2}[0-9]{3}", r"^[A-Z]{2}[0-9]{3}$"),
        ("ACC-[a-z]{4}", r"^ACC-[a-z]{4}$"),
        ("[A-Za-z]", r"^[A-Za-z]$"),
        ("plain", r"^plain$"),
    ],
)
def test_render_pattern(pattern: str, regex: str) -> None:
    value = render_pattern(pattern, random.Random(3))

    assert re.match(regex, value)


def test_random_pattern_spec() -> None:
    gen = _generator({"ssn": RandomPatternSpec(type="random_pattern", pattern=r"\d{3}-\d{2}-\d{4}")})

    assert re.match(r"^\d{3}-\d{2}-\d{4}$", gen.generate("ssn", CorrelationScope()))


def test_unknown_parameter_names_the_parameter() -> None:
    gen = _generator({"x": FixedSpec(type="fixed", value=1)})

    with pytest.raises(UnknownParameterError) as exc_info:
        gen.generate("ghost", CorrelationScope())

    assert exc_info.value.name == "ghost"


def test_empty_spec_set_is_distinct_error() -> None:
    gen = _generator({})

    with pytest.raises(EmptyParameterSetError):
        gen.generate("anything", CorrelationScope())


def test_sample_without_store_is_not_configured() -> None:
    gen = _generator({"ssn": SampleFromStoreSpec(type="sample_from_store", collection="identity", field="x")})

    with pytest.raises(NotConfiguredError):
        gen.generate("ssn", CorrelationScope())


def test_sample_with_unloaded_pool_is_not_configured() -> None:
    spec = SampleFromStoreSpec(type="sample_from_store", collection="identity", field="x")
    gen = _generator({"ssn": spec}, store=ValueStore())

    with pytest.raises(NotConfiguredError, match="identity.x"):
        gen.generate("ssn", CorrelationScope())


def test_uncorrelated_sample_draws_from_pool() -> None:
    store = ValueStore()
    store.add_values("identity", "common.taxIdentificationNumber", ["111", "222"])
    spec = SampleFromStoreSpec(
        type="random_from_loaded", collection="identity", field="common.taxIdentificationNumber"
    )
    gen = _generator({"ssn": spec}, store=store)
    scope = CorrelationScope()

    assert {gen.generate("ssn", scope) for _ in range(100)} == {"111", "222"}
    assert len(scope) == 0


def test_correlation_group_reads_one_record(memory_access: InMemoryDataAccess) -> None:
    specs = {
        "dob": SampleFromStoreSpec(
            type="sample_from_store",
            collection="identity",
            field="individual.dateOfBirth",
            correlation_group="person",
        ),
        "name": SampleFromStoreSpec(
            type="sample_from_store",
            collection="identity",
            field="individual.fullName",
            correlation_group="person",
        ),
    }
    store = ValueStore()
    store.ensure(memory_access, specs.values(), sample_size=2)
    gen = _generator(specs, store=store)
    people = {
        ("1815-12-10", "Ada Lovelace"),
        ("1912-06-23", "Alan Turing"),
    }

    seen = set()
    for _ in range(50):
        scope = CorrelationScope()
        pair = (gen.generate("dob", scope), gen.generate("name", scope))
        assert pair in people
        assert "person" in scope
        seen.add(pair)

    assert seen == people


def test_correlated_array_field_picks_one_element() -> None:
    store = ValueStore()
    store.add_records(
        "identity",
        [{"_id": 1, "emails": [{"emailAddress": "a@x"}, {"emailAddress": "b@x"}]}],
    )
    spec = SampleFromStoreSpec(
        type="sample_from_store", collection="identity", field="emails.emailAddress", correlation_group="p"
    )
    gen = _generator({"email": spec}, store=store)

    assert {gen.generate("email", CorrelationScope()) for _ in range(50)} == {"a@x", "b@x"}


def test_correlated_record_without_field_raises_missing_field() -> None:
    store = ValueStore()
    store.add_records("identity", [{"_id": 3, "business": {"name": "Acme"}}])
    spec = SampleFromStoreSpec(
        type="sample_from_store", collection="identity", field="individual.fullName", correlation_group="p"
    )
    gen = _generator({"name": spec}, store=store)

    with pytest.raises(MissingFieldError) as exc_info:
        gen.generate("name", CorrelationScope())

    assert exc_info.value.field == "individual.fullName"
    assert exc_info.value.parameter == "name"


def test_ensure_loads_each_pool_once(memory_access: InMemoryDataAccess) -> None:
    specs = [
        SampleFromStoreSpec(type="sample_from_store", collection="phone", field="phoneKey.phoneNumber"),
        SampleFromStoreSpec(type="sample_from_store", collection="phone", field="phoneKey.phoneNumber"),
        SampleFromStoreSpec(
            type="sample_from_store", collection="identity", field="_id.customerNumber", correlation_group="g"
        ),
        FixedSpec(type="fixed", value=1),
    ]
    store = ValueStore()

    store.ensure(memory_access, specs, sample_size=3)
    store.ensure(memory_access, specs, sample_size=3)

    assert memory_access.calls_for("phone", "sample_field") == ["phoneKey.phoneNumber"]
    assert memory_access.calls_for("identity", "sample_records") == [3]
    assert store.pool("phone", "phoneKey.phoneNumber").values == ("5550001", "5550002", "5550003")
    assert len(store.records("identity")) == 3


def test_ensure_empty_pool_is_config_error(memory_access: InMemoryDataAccess) -> None:
    spec = SampleFromStoreSpec(type="sample_from_store", collection="missing", field="x")

    with pytest.raises(ConfigError, match="no values found"):
        ValueStore().ensure(memory_access, [spec], sample_size=10)


def test_ensure_without_collaborator_is_not_configured() -> None:
    spec = SampleFromStoreSpec(type="sample_from_store", collection="phone", field="x")

    with pytest.raises(NotConfiguredError):
        ValueStore().ensure(None, [spec], sample_size=10)


def test_string_range_rejects_negative_bounds() -> None:
    with pytest.raises(ValueError, match="min >= 0"):
        RandomRangeSpec(type="random_range", min=-5, max=99, value_type="string")

    assert RandomRangeSpec(type="random_range", min=-5, max=99).min == -5


def test_correlation_group_spanning_collections_is_rejected() -> None:
    specs = {
        "l4": SampleFromStoreSpec(
            type="sample_from_store",
            collection="identity",
            field="common.taxIdentificationNumberLast4",
            correlation_group="g",
        ),
        "ph": SampleFromStoreSpec(
            type="sample_from_store", collection="phone", field="phoneKey.phoneNumber", correlation_group="g"
        ),
    }

    with pytest.raises(ConfigError, match="correlation group 'g' spans collections identity, phone"):
        check_correlation_groups(specs)


def test_plan_validation_rejects_mixed_correlation_group(memory_access: InMemoryDataAccess) -> None:
    definition = QueryDefinition.model_validate(
        {
            "name": "mixed_group",
            "collection": "identity",
            "filter": {
                "common.taxIdentificationNumberLast4": "${param:l4}",
                "phoneNumber": "${param:ph}",
            },
            "parameters": {
                "l4": {
                    "type": "sample_from_store",
                    "collection": "identity",
                    "field": "common.taxIdentificationNumberLast4",
                    "correlationGroup": "g",
                },
                "ph": {
                    "type": "sample_from_store",
                    "collection": "phone",
                    "field": "phoneKey.phoneNumber",
                    "correlationGroup": "g",
                },
            },
        }
    )

    with pytest.raises(ConfigError, match="'g'"):
        QueryPlan(definition, memory_access).validate()


def test_groups_over_one_collection_pass_validation() -> None:
    specs = {
        name: SampleFromStoreSpec(
            type="sample_from_store", collection="identity", field=field, correlation_group=group
        )
        for name, field, group in (
            ("dob", "individual.dateOfBirth", "person"),
            ("name", "individual.fullName", "person"),
            ("other", "individual.fullName", "other_person"),
        )
    }
    specs["phone"] = SampleFromStoreSpec(type="sample_from_store", collection="phone", field="phoneKey.phoneNumber")

    check_correlation_groups(specs)
