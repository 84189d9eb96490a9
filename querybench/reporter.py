from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table


def _ms(value: Optional[float]) -> str:
    return f"{value or 0.0:,.2f}"


def _status(res: Dict[str, Any]) -> str:
    if res.get("error"):
        return "[bold red]halted[/bold red]"
    if res.get("failure_count"):
        return "[yellow]errors[/yellow]"
    if res.get("skipped_count"):
        return "[yellow]partial[/yellow]"
    return "[green]ok[/green]"


def print_results(results: List[Dict[str, Any]], console: Optional[Console] = None) -> None:
    """
    Render one row per query definition as a rich table.

    Success, empty-match, failure and skipped counts are always shown, halted
    definitions included, so no failure goes unnoticed.
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    first = results[0]
    title = (
        "Query Benchmark Results\n"
        f"[dim]iterations={first.get('iterations', 0)} warmup={first.get('warmup_iterations', 0)} "
        f"concurrency={first.get('concurrency', 1)}[/dim]"
    )
    table = Table(title=title, box=box.ROUNDED, caption="Latencies in milliseconds")

    table.add_column("Query", style="cyan", no_wrap=True)
    table.add_column("Type", style="blue")
    table.add_column("Status")
    table.add_column("OK", justify="right", style="green")
    table.add_column("Empty", justify="right", style="magenta")
    table.add_column("Fail", justify="right", style="red")
    table.add_column("Skip", justify="right", style="dim")
    table.add_column("Mean", justify="right", style="green")
    table.add_column("P50", justify="right")
    table.add_column("P95", justify="right", style="yellow")
    table.add_column("P99", justify="right", style="red")
    table.add_column("QPS", justify="right", style="bold green")
    table.add_column("Avg Results", justify="right", style="magenta")

    for res in results:
        table.add_row(
            res.get("query", "Unknown"),
            res.get("type", ""),
            _status(res),
            str(res.get("success_count", 0)),
            str(res.get("empty_count", 0)),
            str(res.get("failure_count", 0)),
            str(res.get("skipped_count", 0)),
            _ms(res.get("mean_ms")),
            _ms(res.get("p50_ms")),
            _ms(res.get("p95_ms")),
            _ms(res.get("p99_ms")),
            f"{res.get('throughput_qps', 0.0):,.1f}",
            f"{res.get('avg_results', 0.0):,.2f}",
        )

    console.print(table)

    for res in results:
        if res.get("error"):
            console.print(f"[bold red]{res.get('query')}[/bold red]: {res['error']}")
        elif res.get("error_types"):
            summary = ", ".join(f"{k}={v}" for k, v in sorted(res["error_types"].items()))
            console.print(f"[yellow]{res.get('query')}[/yellow] failures: {summary}")
        if res.get("missing_field_count"):
            console.print(
                f"[dim]{res.get('query')}: {res['missing_field_count']} filter value(s) omitted "
                "because the sampled record lacked the field[/dim]"
            )
