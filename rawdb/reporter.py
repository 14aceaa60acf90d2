from __future__ import annotations

from typing import Any, Dict, List

from rich import box
from rich.console import Console
from rich.table import Table


def _is_aggregated(results: List[Dict[str, Any]]) -> bool:
    # Aggregated results have a "runs" key > 1 and nested stats dictionaries
    if not results:
        return False
    first = results[0]
    return isinstance(first.get("runs"), int) and first["runs"] > 1


def build_results_table(results: List[Dict[str, Any]]) -> Table:
    """
    Build a rich table of runner results, best throughput first.

    Handles both single-run results and aggregated multi-run results.
    """
    aggregated = _is_aggregated(results)
    table = Table(
        title="RawDb Bench Results",
        box=box.ROUNDED,
        caption="Sorted by Requests/s (descending)",
    )

    table.add_column("Workload", style="cyan", no_wrap=True)
    table.add_column("Count", justify="right", style="blue")
    table.add_column("Rows", justify="right", style="magenta")
    if aggregated:
        table.add_column("Runs", justify="right", style="blue")
        table.add_column("Duration (s)\n[dim](Median ± StdDev)[/dim]", justify="right", style="green")
        table.add_column("Requests/s\n[dim](Median)[/dim]", justify="right", style="bold green")
        table.add_column("Errors", justify="right", style="red")
    else:
        table.add_column("Duration (s)", justify="right", style="green")
        table.add_column("Requests/s", justify="right", style="bold green")
        table.add_column("Peak Memory (MB)", justify="right", style="yellow")
        table.add_column("Error", style="red")

    def sort_key(r: Dict[str, Any]) -> float:
        if aggregated:
            return r["requests_per_sec"]["median"]
        return r.get("requests_per_sec", 0.0)

    for res in sorted(results, key=sort_key, reverse=True):
        workload = res.get("workload", "Unknown")
        count = str(res.get("count", ""))
        rows = f"{res.get('rows', 0):,}"

        if aggregated:
            duration = res["duration_seconds"]
            table.add_row(
                workload,
                count,
                rows,
                str(res["runs"]),
                f"{duration['median']:.2f} ± {duration['stddev']:.2f}",
                f"{res['requests_per_sec']['median']:,.2f}",
                str(res.get("errors", 0)),
            )
        else:
            mem_mb = (res.get("peak_rss_bytes") or 0) / (1024 * 1024)
            table.add_row(
                workload,
                count,
                rows,
                f"{res.get('duration_seconds', 0.0):.2f}",
                f"{res.get('requests_per_sec', 0.0):,.2f}",
                f"{mem_mb:.2f}",
                res.get("error") or "",
            )

    return table


def print_results(results: List[Dict[str, Any]], console: Console | None = None) -> None:
    """Render runner results as a rich table."""
    console = console or Console()
    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return
    console.print(build_results_table(results))


__all__ = ["build_results_table", "print_results"]
