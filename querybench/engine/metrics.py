"""
Latency recording and per-query statistics.

Every measured iteration produces an `IterationOutcome` (success, empty match
or failure). A `QueryRecorder` folds outcomes into a `LatencyHistogram` and
counters under one lock, so concurrent workers never lose an update, and
derives the `QueryStats` row reported for the query.
"""

from __future__ import annotations

import enum
import math
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, TypedDict


class QueryStats(TypedDict, total=False):
    """
    Statistics row for one query definition.

    Latencies are milliseconds. Every numeric field is 0 when the query had no
    successful iteration, so a summary row can always be rendered.
    """

    query: str
    collection: str
    type: str
    iterations: int
    warmup_iterations: int
    concurrency: int
    success_count: int
    empty_count: int
    failure_count: int
    skipped_count: int
    missing_field_count: int
    mean_ms: float
    min_ms: float
    max_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float
    throughput_qps: float
    wall_clock_qps: float
    avg_results: float
    duration_seconds: float
    peak_rss_bytes: Optional[int]
    cpu_percent: Optional[float]
    error_types: Dict[str, int]
    error: Optional[str]


class LatencyHistogram:
    """
    Append-only, thread-safe recorder of latency samples.

    Samples are kept exactly, so percentiles are exact nearest-rank values
    rather than bucket approximations.
    """

    def __init__(self) -> None:
        self._samples: List[float] = []
        self._lock = threading.Lock()

    def record(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError(f"latency cannot be negative: {seconds}")
        with self._lock:
            self._samples.append(seconds)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._samples)

    def snapshot(self) -> List[float]:
        """Sorted copy of the samples, in seconds."""
        with self._lock:
            return sorted(self._samples)

    def mean_ms(self) -> float:
        samples = self.snapshot()
        return (sum(samples) / len(samples)) * 1000.0 if samples else 0.0

    def min_ms(self) -> float:
        samples = self.snapshot()
        return samples[0] * 1000.0 if samples else 0.0

    def max_ms(self) -> float:
        samples = self.snapshot()
        return samples[-1] * 1000.0 if samples else 0.0

    def percentile_ms(self, percentile: float) -> float:
        if not 0 < percentile <= 100:
            raise ValueError(f"percentile must be in (0, 100], got {percentile}")
        samples = self.snapshot()
        if not samples:
            return 0.0
        rank = max(1, math.ceil(percentile / 100.0 * len(samples)))
        return samples[rank - 1] * 1000.0


class Outcome(str, enum.Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    FAILURE = "failure"


@dataclass(frozen=True)
class IterationOutcome:
    """Result of one iteration; failures are values, not exceptions."""

    status: Outcome
    elapsed_seconds: float = 0.0
    result_count: int = 0
    missing_fields: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def completed(cls, elapsed_seconds: float, result_count: int, missing_fields: int = 0) -> "IterationOutcome":
        status = Outcome.SUCCESS if result_count > 0 else Outcome.EMPTY
        return cls(
            status=status,
            elapsed_seconds=elapsed_seconds,
            result_count=result_count,
            missing_fields=missing_fields,
        )

    @classmethod
    def failed(cls, exc: BaseException, missing_fields: int = 0) -> "IterationOutcome":
        return cls(
            status=Outcome.FAILURE,
            missing_fields=missing_fields,
            error=str(exc),
            error_type=type(exc).__name__,
        )

    @property
    def ok(self) -> bool:
        return self.status is not Outcome.FAILURE


def _round_float(value: float, decimals: int = 3) -> float:
    return round(value, decimals)


class QueryRecorder:
    """Collects the outcomes of one query definition's measured phase."""

    def __init__(self) -> None:
        self.histogram = LatencyHistogram()
        self._lock = threading.Lock()
        self._success = 0
        self._empty = 0
        self._failure = 0
        self._results = 0
        self._missing = 0
        self._error_types: Counter[str] = Counter()

    def record(self, outcome: IterationOutcome) -> None:
        with self._lock:
            self._missing += outcome.missing_fields
            if outcome.ok:
                self._success += 1
                self._results += outcome.result_count
                if outcome.status is Outcome.EMPTY:
                    self._empty += 1
            else:
                self._failure += 1
                self._error_types[outcome.error_type or "Error"] += 1
        if outcome.ok:
            self.histogram.record(outcome.elapsed_seconds)

    @property
    def success_count(self) -> int:
        with self._lock:
            return self._success

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure

    @property
    def empty_count(self) -> int:
        with self._lock:
            return self._empty

    def summarize(self, wall_seconds: float = 0.0) -> QueryStats:
        """
        Derive the statistics row.

        ``throughput_qps`` is the serial-equivalent rate ``1000 / mean_ms``;
        ``wall_clock_qps`` divides successes by the measured phase's wall time.
        """
        with self._lock:
            success, empty, failure = self._success, self._empty, self._failure
            results, missing = self._results, self._missing
            error_types = dict(self._error_types)

        mean_ms = self.histogram.mean_ms()
        return QueryStats(
            success_count=success,
            empty_count=empty,
            failure_count=failure,
            missing_field_count=missing,
            mean_ms=_round_float(mean_ms),
            min_ms=_round_float(self.histogram.min_ms()),
            max_ms=_round_float(self.histogram.max_ms()),
            p50_ms=_round_float(self.histogram.percentile_ms(50)),
            p95_ms=_round_float(self.histogram.percentile_ms(95)),
            p99_ms=_round_float(self.histogram.percentile_ms(99)),
            throughput_qps=_round_float(1000.0 / mean_ms if mean_ms > 0 else 0.0, 2),
            wall_clock_qps=_round_float(success / wall_seconds if success and wall_seconds > 0 else 0.0, 2),
            avg_results=_round_float(results / success if success else 0.0, 2),
            error_types=error_types,
        )


__all__ = [
    "QueryStats",
    "LatencyHistogram",
    "Outcome",
    "IterationOutcome",
    "QueryRecorder",
]
