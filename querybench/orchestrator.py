"""
Benchmark runner: warm-up, measured iterations, concurrency and persistence.

Usage (example from CLI):
    from querybench.orchestrator import RunConfig, run_definitions

    config = load_query_config("queries.yaml")
    results = run_definitions(RunConfig(definitions=config.queries, iterations=100), data_access)

Each query definition is run independently: a ConfigError halts only that
definition (unless the failure policy is strict), failed iterations are
counted but never abort the run, and every definition yields a stats row.

Outputs are saved to `results/` when persistence is enabled:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Literal, Optional, Sequence

from querybench.config import get_settings
from querybench.domain.errors import ConfigError, DataAccessError
from querybench.domain.models import QueryDefinition
from querybench.engine.abstract import DataAccess
from querybench.engine.metrics import IterationOutcome, QueryRecorder, QueryStats
from querybench.engine.parameters import CorrelationScope, ValueStore
from querybench.engine.plan import QueryPlan
from querybench.utils.logging import get_logger
from querybench.utils.profiler import profile_block

log = get_logger(__name__)

FailurePolicy = Literal["tolerant", "strict"]


@dataclass
class RunConfig:
    """
    Parameters of one benchmark invocation.

    ``None`` numeric fields fall back to the process settings.
    """

    definitions: Sequence[QueryDefinition]
    iterations: Optional[int] = None
    warmup: Optional[int] = None
    concurrency: Optional[int] = None
    sample_size: Optional[int] = None
    run_timeout_seconds: Optional[float] = None
    failure_policy: FailurePolicy = "tolerant"
    persist: bool = False
    results_dir: Path | str = "results"
    cancel_event: Optional[threading.Event] = None
    seed: Optional[int] = None


class _StopSignal:
    """Run-level stop condition: external cancellation or the run deadline."""

    def __init__(self, cancel_event: Optional[threading.Event], timeout_seconds: Optional[float]) -> None:
        self._cancel = cancel_event or threading.Event()
        self._deadline = time.monotonic() + timeout_seconds if timeout_seconds else None

    def __call__(self) -> bool:
        if self._cancel.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline


def run_iteration(plan: QueryPlan) -> IterationOutcome:
    """
    Generate parameters, resolve filters and run the query once, timed end to end.

    Raises
    ------
    ConfigError
        Configuration problems are not iteration failures; they propagate so
        the whole definition halts.
    """
    scope = CorrelationScope()
    missing: list = []
    start = time.perf_counter()
    try:
        count = plan.execute(scope, missing)
    except ConfigError:
        raise
    except Exception as exc:  # noqa: BLE001 - every data-access failure is folded into the stats
        return IterationOutcome.failed(exc, missing_fields=len(missing))
    return IterationOutcome.completed(time.perf_counter() - start, count, missing_fields=len(missing))


def _dispatch(
    total: int,
    concurrency: int,
    task: Callable[[], None],
    should_stop: Callable[[], bool],
) -> int:
    """
    Run ``task`` up to ``total`` times on ``concurrency`` workers.

    Workers claim iterations one at a time, so a stop signal prevents new
    iterations from starting while in-flight ones finish. An exception in any
    task stops all workers and is re-raised. Returns the number of iterations
    started.
    """
    lock = threading.Lock()
    aborted = threading.Event()
    claimed = 0

    def claim() -> bool:
        nonlocal claimed
        with lock:
            if claimed >= total or aborted.is_set() or should_stop():
                return False
            claimed += 1
            return True

    def worker() -> None:
        try:
            while claim():
                task()
        except BaseException:
            aborted.set()
            raise

    if concurrency <= 1 or total <= 1:
        worker()
        return claimed

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="querybench") as pool:
        futures = [pool.submit(worker) for _ in range(min(concurrency, total))]
        errors = []
        for future in as_completed(futures):
            exc = future.exception()
            if exc is not None:
                errors.append(exc)
    if errors:
        raise errors[0]
    return claimed


def _halted(base: QueryStats, iterations: int, exc: BaseException) -> QueryStats:
    stats = QueryStats(**base)
    stats.update(QueryRecorder().summarize())
    stats.update(skipped_count=iterations, duration_seconds=0.0, error=str(exc))
    return stats


def _run_definition(
    definition: QueryDefinition,
    data_access: DataAccess,
    store: ValueStore,
    *,
    iterations: int,
    warmup: int,
    concurrency: int,
    sample_size: int,
    should_stop: Callable[[], bool],
    failure_policy: FailurePolicy,
    rng: Optional[random.Random],
) -> QueryStats:
    name = definition.name
    base = QueryStats(
        query=name,
        collection=definition.collection,
        type=definition.type,
        iterations=iterations,
        warmup_iterations=warmup,
        concurrency=concurrency,
    )

    try:
        plan = QueryPlan(definition, data_access, store=store, rng=rng)
        plan.validate()
        store.ensure(data_access, definition.parameters.values(), sample_size)
    except (ConfigError, DataAccessError) as exc:
        log.error(
            f"[QUERY HALTED] {name}: {exc}",
            extra={"query": name, "error_type": type(exc).__name__},
        )
        if failure_policy == "strict":
            raise
        return _halted(base, iterations, exc)

    if warmup and not should_stop():
        log.info(f"[WARMUP] {warmup} iterations for {name}", extra={"query": name, "warmup": warmup})
        for i in range(warmup):
            if should_stop():
                break
            try:
                outcome = run_iteration(plan)
            except Exception as exc:  # noqa: BLE001 - warm-up never aborts the run
                outcome = IterationOutcome.failed(exc)
            if not outcome.ok:
                log.warning(
                    f"[WARMUP] Iteration {i} failed for {name}",
                    extra={"query": name, "error": outcome.error, "error_type": outcome.error_type},
                )

    recorder = QueryRecorder()

    def measured() -> None:
        outcome = run_iteration(plan)
        recorder.record(outcome)
        if not outcome.ok:
            log.warning(
                f"[ITERATION FAILED] {name}: {outcome.error}",
                extra={"query": name, "error_type": outcome.error_type},
            )

    error: Optional[str] = None
    dispatched = 0
    with profile_block(name) as profile:
        try:
            dispatched = _dispatch(iterations, concurrency, measured, should_stop)
        except ConfigError as exc:
            log.error(
                f"[QUERY HALTED] {name}: {exc}",
                extra={"query": name, "error_type": type(exc).__name__},
            )
            if failure_policy == "strict":
                raise
            error = str(exc)
            dispatched = recorder.success_count + recorder.failure_count

    stats = QueryStats(**base)
    stats.update(recorder.summarize(wall_seconds=profile.duration_seconds))
    stats.update(
        skipped_count=iterations - dispatched,
        duration_seconds=round(profile.duration_seconds, 3),
        peak_rss_bytes=profile.peak_rss_bytes,
        cpu_percent=round(profile.cpu_percent, 1) if profile.cpu_percent is not None else None,
        error=error,
    )
    return stats


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    with latest_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True, default=str)
    with archive_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True, default=str)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def run_definitions(
    config: RunConfig,
    data_access: DataAccess,
    store: Optional[ValueStore] = None,
) -> List[QueryStats]:
    """
    Benchmark every definition in ``config`` and return one stats row each.

    Parameters
    ----------
    config : RunConfig
        Definitions and run parameters.
    data_access : DataAccess
        Collaborator shared read-only by all workers.
    store : ValueStore | None
        Pre-loaded value pools; a fresh store is created (and filled on demand
        before each definition) when omitted.

    Returns
    -------
    List[QueryStats]
        Rows in definition order. Definitions halted by a ConfigError carry
        the message in ``error`` and zero statistics.
    """
    settings = get_settings()
    iterations = config.iterations if config.iterations is not None else settings.benchmark_iterations
    warmup = config.warmup if config.warmup is not None else settings.benchmark_warmup
    concurrency = max(1, config.concurrency or settings.benchmark_concurrency)
    sample_size = config.sample_size or settings.benchmark_sample_size
    timeout = (
        config.run_timeout_seconds
        if config.run_timeout_seconds is not None
        else settings.benchmark_run_timeout_seconds
    )

    should_stop = _StopSignal(config.cancel_event, timeout)
    store = store if store is not None else ValueStore()
    rng = random.Random(config.seed) if config.seed is not None else None

    results: List[QueryStats] = []
    total = len(config.definitions)
    for position, definition in enumerate(config.definitions, start=1):
        name = definition.name
        log.info(f"{'=' * 60}")
        log.info(
            f"[QUERY {position}/{total}] {name}",
            extra={
                "query": name,
                "type": definition.type,
                "iterations": iterations,
                "warmup": warmup,
                "concurrency": concurrency,
            },
        )
        stats = _run_definition(
            definition,
            data_access,
            store,
            iterations=iterations,
            warmup=warmup,
            concurrency=concurrency,
            sample_size=sample_size,
            should_stop=should_stop,
            failure_policy=config.failure_policy,
            rng=rng,
        )
        results.append(stats)
        log.info(
            f"[QUERY COMPLETE] {name}",
            extra={
                "query": name,
                "success": stats.get("success_count"),
                "empty": stats.get("empty_count"),
                "failed": stats.get("failure_count"),
                "skipped": stats.get("skipped_count"),
                "mean_ms": stats.get("mean_ms"),
                "p95_ms": stats.get("p95_ms"),
            },
        )

    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "iterations": iterations,
        "warmup": warmup,
        "concurrency": concurrency,
        "queries": [d.name for d in config.definitions],
        "results": results,
    }
    if config.persist:
        _persist_results(payload, Path(config.results_dir))

    log.info(
        f"[RUN COMPLETE] {total} query definition(s) executed",
        extra={"queries": total, "halted": sum(1 for r in results if r.get("error"))},
    )
    return results


def run_benchmark(
    definitions: Sequence[QueryDefinition],
    data_access: DataAccess,
    iterations: int,
    warmup: int = 0,
    concurrency: int = 1,
) -> List[QueryStats]:
    """Shorthand for `run_definitions` with explicit counts and no persistence."""
    return run_definitions(
        RunConfig(
            definitions=definitions,
            iterations=iterations,
            warmup=warmup,
            concurrency=concurrency,
        ),
        data_access,
    )


__all__ = [
    "RunConfig",
    "run_definitions",
    "run_benchmark",
    "run_iteration",
]
