from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer

from querybench.config import get_settings
from querybench.domain.errors import ConfigError
from querybench.domain.loader import load_query_config
from querybench.engine.abstract import DataAccess
from querybench.infrastructure.db_factory import get_data_access
from querybench.infrastructure.memory import InMemoryDataAccess
from querybench.orchestrator import RunConfig, run_definitions
from querybench.reporter import print_results
from querybench.utils.logging import configure_logging

app = typer.Typer(help="Query benchmark for document stores without native joins.")


def _load_dataset(path: Path) -> InMemoryDataAccess:
    with path.open("r", encoding="utf-8") as f:
        collections = json.load(f)
    if not isinstance(collections, dict):
        raise ConfigError(f"{path}: dataset must map collection names to document lists")
    return InMemoryDataAccess(collections)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"MongoDB={settings.mongo_uri} db={settings.mongo_database} "
        f"pool={settings.mongo_pool_size} timeout={settings.mongo_operation_timeout_ms}ms | "
        f"iterations={settings.benchmark_iterations} warmup={settings.benchmark_warmup} "
        f"concurrency={settings.benchmark_concurrency} sample={settings.benchmark_sample_size}"
    )


@app.command("list")
def list_queries(
    config: Path = typer.Option(..., "--config", "-f", help="Query configuration file."),
) -> None:
    """
    List the queries defined in a configuration file.
    """
    query_config = load_query_config(config)
    for query in query_config.queries:
        params = ", ".join(query.parameters) or "-"
        hops = sum(1 for _ in query.chain().walk())
        typer.echo(f"{query.name} [{query.type}, {hops} lookup(s)] params: {params}")


@app.command()
def run(
    config: Path = typer.Option(..., "--config", "-f", help="Query configuration file."),
    query: Optional[str] = typer.Option(None, "--query", "-n", help="Run only the named query."),
    iterations: Optional[int] = typer.Option(None, "--iterations", "-i", help="Measured iterations per query."),
    warmup: Optional[int] = typer.Option(None, "--warmup", "-w", help="Warm-up iterations per query."),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Concurrent worker threads."),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Run-level timeout in seconds; stops dispatching new iterations."
    ),
    dataset: Optional[Path] = typer.Option(
        None,
        "--dataset",
        help="JSON file of {collection: [documents]} to run against in memory instead of MongoDB.",
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for parameter generation."),
    persist: bool = typer.Option(True, "--persist/--no-persist", help="Write results JSON files."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines."),
) -> None:
    """
    Run the configured queries and print a summary table.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=json_logs or settings.log_json)

    query_config = load_query_config(config)
    definitions = query_config.select(query)
    if not definitions:
        typer.echo(f"No query found with name: {query}", err=True)
        raise typer.Exit(code=1)

    execution = query_config.query_execution
    data_access: DataAccess = _load_dataset(dataset) if dataset else get_data_access(settings)

    results = run_definitions(
        RunConfig(
            definitions=definitions,
            iterations=iterations if iterations is not None else execution.iterations,
            warmup=warmup if warmup is not None else execution.warmup_iterations,
            concurrency=threads or execution.threads,
            run_timeout_seconds=timeout,
            persist=persist,
            results_dir=settings.results_dir,
            seed=seed,
        ),
        data_access,
    )
    print_results(results)

    if any(r.get("error") for r in results):
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
