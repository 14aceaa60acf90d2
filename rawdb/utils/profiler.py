"""
Profiling utilities for RawDb Bench.

`profile_block` measures a block of code, synchronous or a stretch of a
coroutine:
- Wall-clock time (perf_counter)
- CPU usage (psutil)
- Peak RSS via a background sampling thread (psutil)
- Peak Python allocations (tracemalloc)

Usage:
    from rawdb.utils.profiler import profile_block

    with profile_block("updates") as stats:
        await executor.update_rows(20)

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import threading
import time
import tracemalloc
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)
    peak_traced_bytes: Optional[int] = field(default=None)
    cpu_percent: Optional[float] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)


@contextlib.contextmanager
def profile_block(
    label: str, sample_interval_ms: int = 50, enable_tracemalloc: bool = False
) -> Generator[ProfileStats, None, None]:
    """
    Profile the enclosed block.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    sample_interval_ms : int
        Interval in milliseconds for RSS sampling.
    enable_tracemalloc : bool
        Track Python-level allocations. Off by default because it slows down
        allocation-heavy workloads noticeably.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    peak_rss = process.memory_info().rss
    stop_sampling = threading.Event()

    def _sample_memory() -> None:
        nonlocal peak_rss
        while not stop_sampling.is_set():
            try:
                peak_rss = max(peak_rss, process.memory_info().rss)
            except psutil.Error:
                return
            stop_sampling.wait(timeout=sample_interval_ms / 1000.0)

    tracemalloc_was_running = tracemalloc.is_tracing()
    if enable_tracemalloc and not tracemalloc_was_running:
        tracemalloc.start()

    # CPU percent needs a priming call
    process.cpu_percent(interval=None)

    sampler = threading.Thread(target=_sample_memory, daemon=True)
    sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts

        stop_sampling.set()
        sampler.join(timeout=1.0)

        stats.peak_rss_bytes = peak_rss if peak_rss > 0 else None
        stats.cpu_percent = process.cpu_percent(interval=None)

        if enable_tracemalloc and tracemalloc.is_tracing():
            _, peak_traced = tracemalloc.get_traced_memory()
            stats.peak_traced_bytes = peak_traced
            # Stop tracemalloc only if we started it
            if not tracemalloc_was_running:
                tracemalloc.stop()


__all__ = ["ProfileStats", "profile_block"]
