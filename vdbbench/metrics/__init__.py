"""
Metrics for benchmark evaluation.

    - quality: recall and precision against exact ground truth
    - performance: latency percentiles and throughput
    - resource: CPU and memory of the driver process
    - stats: running mean/variance
"""

from vdbbench.metrics.performance import (
    compute_latency_percentiles,
    compute_throughput,
    throughput_from_entries,
)
from vdbbench.metrics.quality import compute_precision, compute_recall_at_k
from vdbbench.metrics.resource import ResourceMonitor, measure_memory_usage
from vdbbench.metrics.stats import RunningStats

__all__ = [
    "compute_latency_percentiles",
    "compute_throughput",
    "throughput_from_entries",
    "compute_precision",
    "compute_recall_at_k",
    "ResourceMonitor",
    "measure_memory_usage",
    "RunningStats",
]
