"""
Performance metrics for latency and throughput evaluation.

Throughput is derived after the fact from the logged start times and
latencies, never measured incrementally.
"""

from typing import Dict, List, Sequence

import numpy as np

from vdbbench.core.types import ResultLogEntry


def compute_latency_percentiles(
    latencies_ms: List[float],
) -> Dict[str, float]:
    """
    Compute latency percentiles from a list of latencies.

    Args:
        latencies_ms: List of query latencies in milliseconds

    Returns:
        Dictionary with p50, p90, p95, p99, mean, std, min, max
    """
    if not latencies_ms:
        return {key: 0.0 for key in ("p50", "p90", "p95", "p99", "mean", "std", "min", "max")}

    latencies = np.array(latencies_ms)

    return {
        "p50": float(np.percentile(latencies, 50)),
        "p90": float(np.percentile(latencies, 90)),
        "p95": float(np.percentile(latencies, 95)),
        "p99": float(np.percentile(latencies, 99)),
        "mean": float(np.mean(latencies)),
        "std": float(np.std(latencies)),
        "min": float(np.min(latencies)),
        "max": float(np.max(latencies)),
    }


def compute_throughput(
    num_items: int,
    total_time_sec: float,
) -> float:
    """
    Compute throughput (items per second).

    Args:
        num_items: Number of items processed
        total_time_sec: Total time in seconds

    Returns:
        Items per second
    """
    return num_items / total_time_sec if total_time_sec > 0 else 0.0


def wall_clock_span(entries: Sequence[ResultLogEntry]) -> float:
    """Seconds from the first query start to the last query end."""
    if not entries:
        return 0.0
    first_start = min(e.started_at for e in entries)
    last_end = max(e.started_at + e.latency_ms / 1000.0 for e in entries)
    return last_end - first_start


def throughput_from_entries(entries: Sequence[ResultLogEntry]) -> float:
    """``total_queries / wall_clock_span`` over the given log entries."""
    return compute_throughput(len(entries), wall_clock_span(entries))
