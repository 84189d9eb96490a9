from __future__ import annotations

from rich.console import Console

from querybench.reporter import print_results

RESULTS = [
    {
        "query": "uc1_phone_ssn_last4",
        "type": "join",
        "iterations": 10,
        "warmup_iterations": 3,
        "concurrency": 2,
        "success_count": 8,
        "empty_count": 6,
        "failure_count": 2,
        "skipped_count": 0,
        "missing_field_count": 3,
        "mean_ms": 1.25,
        "p50_ms": 1.0,
        "p95_ms": 2.5,
        "p99_ms": 3.0,
        "throughput_qps": 800.0,
        "avg_results": 0.25,
        "error_types": {"DataAccessError": 2},
        "error": None,
    },
    {
        "query": "ghost_parameter",
        "type": "find",
        "success_count": 0,
        "skipped_count": 10,
        "error": "Unknown parameter 'ghost' referenced by filter placeholder",
    },
]


def _render(results: list) -> str:
    console = Console(record=True, width=200)
    print_results(results, console=console)
    return console.export_text()


def test_table_shows_counts_and_failures() -> None:
    text = _render(RESULTS)

    assert "Query Benchmark Results" in text
    assert "uc1_phone_ssn_last4" in text
    assert "iterations=10 warmup=3 concurrency=2" in text
    assert "halted" in text
    assert "errors" in text
    assert "ghost_parameter: Unknown parameter 'ghost'" in text
    assert "uc1_phone_ssn_last4 failures: DataAccessError=2" in text
    assert "3 filter value(s) omitted" in text


def test_no_results() -> None:
    assert "No results to display." in _render([])
