"""
Benchmark runner: drives executor workloads, profiles them and persists results.

Usage (example from CLI):
    from rawdb.runner import RunConfig, run_benchmark

    results = run_benchmark(RunConfig(workload_names=["queries", "updates"], count=20))
    print(results)

Outputs are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import asyncio
import json
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Tuple

from rawdb.config import Settings, get_settings
from rawdb.data.executor import QueryExecutor
from rawdb.data.random_source import DefaultRandom
from rawdb.infrastructure.db_factory import build_connection_provider, build_dsn
from rawdb.infrastructure.session import SessionCache
from rawdb.utils.logging import get_logger
from rawdb.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)

Workload = Callable[[QueryExecutor, int], Awaitable[int]]
FailurePolicy = Literal["tolerant", "strict"]


async def _db(executor: QueryExecutor, count: int) -> int:
    del count
    await executor.load_single_row()
    return 1


async def _queries(executor: QueryExecutor, count: int) -> int:
    return len(await executor.load_multiple_rows(count))


async def _updates(executor: QueryExecutor, count: int) -> int:
    return len(await executor.update_rows(count))


async def _fortunes(executor: QueryExecutor, count: int) -> int:
    del count
    return len(await executor.load_fortunes())


async def _fortunes_sync(executor: QueryExecutor, count: int) -> int:
    del count
    return len(await asyncio.to_thread(executor.load_fortunes_sync))


def _workload_registry() -> Dict[str, Workload]:
    """Registry of available workloads."""
    return {
        "db": _db,
        "queries": _queries,
        "updates": _updates,
        "fortunes": _fortunes,
        "fortunes_sync": _fortunes_sync,
    }


# Workloads whose calls share one session per worker and must not overlap.
_SERIALIZED_WORKLOADS = frozenset({"fortunes"})


def available_workloads() -> List[str]:
    """List available workload names."""
    return sorted(_workload_registry().keys())


def _resolve_workload(name: str) -> Workload:
    registry = _workload_registry()
    if name not in registry:
        raise ValueError(f"Unknown workload '{name}'. Available: {', '.join(registry)}")
    return registry[name]


@dataclass
class RunConfig:
    """
    Parameters of one benchmark invocation.

    `requests` calls of each workload are issued per run, at most
    `concurrency` of them in flight at once.
    """

    workload_names: List[str] = field(default_factory=lambda: ["all"])
    count: Optional[int] = None
    requests: int = 100
    concurrency: int = 8
    runs: int = 1
    warmup: bool = False
    persist: bool = True
    results_dir: Path | str = "results"
    failure_policy: FailurePolicy = "tolerant"


def build_executor(
    settings: Optional[Settings] = None,
    dsn_override: Optional[str] = None,
) -> Tuple[QueryExecutor, Callable[[], Awaitable[None]]]:
    """
    Wire a QueryExecutor from settings.

    Returns the executor and a coroutine function that releases the pools and
    the calling worker's persistent session.
    """
    settings = settings or get_settings()
    dsn = dsn_override or build_dsn(settings)
    connections = build_connection_provider(settings, dsn_override=dsn)
    sessions = SessionCache(dsn, connect_timeout_s=settings.db_connect_timeout_s)
    executor = QueryExecutor(connections, sessions, DefaultRandom(settings.random_seed))

    async def close() -> None:
        await sessions.close_current()
        await connections.close_all()

    return executor, close


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _summary(values: List[float], decimals: int = 2) -> Dict[str, float]:
    return {
        key: _round_float(value, decimals)
        for key, value in {
            "median": statistics.median(values),
            "mean": statistics.mean(values),
            "stddev": statistics.stdev(values) if len(values) > 1 else 0.0,
            "min": min(values),
            "max": max(values),
        }.items()
    }


def _aggregate_runs(run_results: List[dict]) -> dict:
    """
    Aggregate multiple runs into statistical summary.

    Returns median, mean, stddev, min and max for duration and throughput, and
    for CPU/memory when the profiler captured them.
    """
    cpu_percents = [r["cpu_percent"] for r in run_results if r.get("cpu_percent")]
    peak_rss_values = [r["peak_rss_bytes"] for r in run_results if r.get("peak_rss_bytes")]

    aggregated: Dict[str, Any] = {
        "duration_seconds": _summary([r["duration_seconds"] for r in run_results]),
        "requests_per_sec": _summary([r["requests_per_sec"] for r in run_results]),
        "rows": run_results[0]["rows"],
        "errors": sum(1 for r in run_results if r.get("error")),
    }
    if cpu_percents:
        aggregated["cpu_percent"] = _summary(cpu_percents, decimals=1)
    if peak_rss_values:
        aggregated["peak_rss_bytes"] = {
            key: int(value) for key, value in _summary(peak_rss_values).items()
        }
    return aggregated


def _merge_result(result: Dict[str, Any], stats: ProfileStats) -> dict:
    """Merge a workload result with profiler stats, rounding floats for readability."""
    merged = dict(result)
    merged.setdefault("rows", 0)
    merged.setdefault("requests", 0)
    duration = stats.duration_seconds
    merged["duration_seconds"] = _round_float(duration)
    merged["requests_per_sec"] = _round_float(merged["requests"] / duration) if duration else 0.0
    merged["rows_per_sec"] = _round_float(merged["rows"] / duration) if duration else 0.0
    merged["peak_rss_bytes"] = stats.peak_rss_bytes
    merged["cpu_percent"] = _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None
    merged["profile"] = {
        "label": stats.label,
        "start_ts": _round_float(stats.start_ts, 3),
        "end_ts": _round_float(stats.end_ts, 3),
        "duration_seconds": _round_float(stats.duration_seconds),
        "peak_rss_bytes": stats.peak_rss_bytes,
        "cpu_percent": _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None,
    }
    return merged


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


async def _drive(
    name: str, executor: QueryExecutor, count: int, requests: int, concurrency: int
) -> int:
    """Issue `requests` calls of one workload, `concurrency` at a time; return rows produced."""
    workload = _resolve_workload(name)
    limiter = asyncio.Semaphore(1 if name in _SERIALIZED_WORKLOADS else concurrency)

    async def one_call() -> int:
        async with limiter:
            return await workload(executor, count)

    outcomes = await asyncio.gather(
        *(one_call() for _ in range(requests)), return_exceptions=True
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return sum(outcomes)


async def _profiled_run(
    name: str, executor: QueryExecutor, count: int, config: RunConfig
) -> dict:
    log.info(f"[WORKLOAD START] {name}", extra={"workload": name, "count": count})
    with profile_block(name) as stats:
        try:
            rows = await _drive(name, executor, count, config.requests, config.concurrency)
            result: Dict[str, Any] = {"rows": rows, "requests": config.requests}
            log.info(f"[WORKLOAD SUCCESS] {name}", extra={"workload": name, "rows": rows})
        except Exception as exc:
            if config.failure_policy == "strict":
                raise
            log.exception(f"[WORKLOAD FAILED] {name}", extra={"workload": name})
            result = {
                "rows": 0,
                "requests": 0,
                "error": str(exc),
                "notes": "Execution failed in tolerant mode; run continued.",
                "extra": {
                    "failed": True,
                    "error_type": type(exc).__name__,
                    "failure_policy": config.failure_policy,
                },
            }
    return _merge_result(result, stats)


async def run_workloads(executor: QueryExecutor, config: RunConfig) -> List[dict]:
    """
    Run the configured workloads against `executor`.

    Returns
    -------
    List[dict]
        One result per workload. With `runs > 1` each entry holds aggregated
        statistics plus the individual runs.
    """
    count = config.count if config.count is not None else get_settings().benchmark_count
    names = list(config.workload_names)
    if names == ["all"]:
        names = available_workloads()
    for name in names:
        _resolve_workload(name)

    results: List[dict] = []
    for name in names:
        if config.warmup:
            log.info(f"[WARMUP] {name}", extra={"workload": name})
            try:
                await _drive(name, executor, count, config.concurrency, config.concurrency)
            except Exception as exc:
                if config.failure_policy == "strict":
                    raise
                log.warning(f"[WARMUP] Failed for {name}", extra={"workload": name, "error": str(exc)})

        run_results: List[dict] = []
        for run_num in range(1, config.runs + 1):
            result = await _profiled_run(name, executor, count, config)
            result.update({"workload": name, "count": count, "run": run_num})
            run_results.append(result)
            log.info(
                f"[RUN {run_num}/{config.runs}] Completed {name}",
                extra={
                    "workload": name,
                    "rows": result["rows"],
                    "duration": result["duration_seconds"],
                    "requests_per_sec": result["requests_per_sec"],
                },
            )

        if config.runs > 1:
            aggregated = _aggregate_runs(run_results)
            aggregated.update(
                {
                    "workload": name,
                    "count": count,
                    "runs": config.runs,
                    "individual_runs": run_results,
                }
            )
            results.append(aggregated)
        else:
            results.extend(run_results)

    if config.persist:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "count": count,
            "workloads": names,
            "results": results,
        }
        _persist_results(payload, Path(config.results_dir))

    return results


def run_benchmark(
    config: RunConfig,
    settings: Optional[Settings] = None,
    dsn_override: Optional[str] = None,
) -> List[dict]:
    """Build an executor, run the workloads on a fresh event loop and release resources."""

    async def _main() -> List[dict]:
        executor, close = build_executor(settings, dsn_override)
        try:
            return await run_workloads(executor, config)
        finally:
            await close()

    return asyncio.run(_main())


__all__ = [
    "RunConfig",
    "available_workloads",
    "build_executor",
    "run_benchmark",
    "run_workloads",
]
