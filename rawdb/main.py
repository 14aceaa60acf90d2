from __future__ import annotations

import json
import sys
from typing import Optional

import typer

from rawdb.config import get_settings
from rawdb.reporter import print_results
from rawdb.runner import RunConfig, available_workloads, run_benchmark
from rawdb.utils.logging import configure_logging

app = typer.Typer(help="RawDb Bench CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    provider = (
        f"pooled({settings.db_pool_min_size},{settings.db_pool_max_size})"
        if settings.db_pooling
        else "direct"
    )
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"provider={provider} count={settings.benchmark_count} runs={settings.benchmark_runs}"
    )


@app.command()
def workloads() -> None:
    """
    List available workloads.
    """
    typer.echo("Available workloads: " + ", ".join(available_workloads()))


@app.command()
def run(
    workload: str = typer.Option(
        "all",
        "--workload",
        "-w",
        help="Workload to run (db, queries, updates, fortunes, fortunes_sync, all).",
    ),
    count: Optional[int] = typer.Option(
        None,
        "--count",
        "-c",
        help="Rows per queries/updates call (default from settings).",
    ),
    requests: int = typer.Option(100, "--requests", "-n", help="Calls per run."),
    concurrency: int = typer.Option(8, "--concurrency", help="Calls in flight at once."),
    runs: Optional[int] = typer.Option(None, "--runs", "-r", help="Measurement runs."),
    warmup: bool = typer.Option(False, "--warmup", help="Run one warmup round first."),
    strict: bool = typer.Option(False, "--strict", help="Abort on the first failure."),
    no_persist: bool = typer.Option(False, "--no-persist", help="Do not write results/."),
    json_logs: Optional[bool] = typer.Option(None, "--json-logs/--console-logs"),
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Optional DSN override."),
) -> None:
    """
    Run one or all workloads, print a summary table and the raw results.
    """
    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        json_logs=settings.json_logs if json_logs is None else json_logs,
    )
    config = RunConfig(
        workload_names=[workload],
        count=count,
        requests=requests,
        concurrency=concurrency,
        runs=runs or settings.benchmark_runs,
        warmup=warmup,
        persist=not no_persist,
        failure_policy="strict" if strict else "tolerant",
    )
    typer.echo(
        f"Running workload='{workload}' requests={requests} concurrency={concurrency} "
        f"runs={config.runs}."
    )
    results = run_benchmark(config, settings=settings, dsn_override=dsn)
    print_results(results)
    typer.echo(json.dumps(results, indent=2, default=str))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
