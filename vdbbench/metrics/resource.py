"""
Resource metrics for the load driver process.

The database servers run elsewhere; these numbers describe the benchmark
client only, so a saturated driver can be told apart from a slow backend.
"""

import os
import threading
import time
from typing import Dict, Optional

import psutil


def measure_memory_usage() -> Dict[str, int]:
    """
    Measure current memory usage.

    Returns:
        Dictionary with memory metrics in bytes
    """
    process = psutil.Process(os.getpid())
    mem_info = process.memory_info()

    return {
        "rss": mem_info.rss,  # Resident Set Size
        "vms": mem_info.vms,  # Virtual Memory Size
        "shared": getattr(mem_info, "shared", 0),
    }


class ResourceMonitor:
    """
    Context manager for monitoring resource usage during operations.

    A daemon thread samples RSS every ``sample_interval_sec`` so that the
    peak is caught even when the monitored block never calls ``sample()``.

    Example:
        with ResourceMonitor() as monitor:
            run_queries()
        print(monitor.peak_memory_bytes)
    """

    def __init__(self, sample_interval_sec: float = 0.1):
        """
        Initialize resource monitor.

        Args:
            sample_interval_sec: Sampling interval for peak detection
        """
        self.sample_interval = sample_interval_sec
        self.process = psutil.Process(os.getpid())

        self._start_memory = 0
        self._peak_memory = 0
        self._start_cpu_times = None
        self._end_cpu_time = 0.0
        self._start_time = 0.0
        self._end_time = 0.0
        self._monitoring = False
        self._stop = threading.Event()
        self._sampler: Optional[threading.Thread] = None

    def __enter__(self):
        self._start_memory = self.process.memory_info().rss
        self._peak_memory = self._start_memory
        self._start_cpu_times = self.process.cpu_times()
        self._start_time = time.perf_counter()
        self._monitoring = True
        self._stop.clear()
        self._sampler = threading.Thread(target=self._run, name="resource-monitor", daemon=True)
        self._sampler.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stop.set()
        if self._sampler is not None:
            self._sampler.join()
        self._end_time = time.perf_counter()
        self._end_cpu_time = self.cpu_time_sec
        self._monitoring = False
        # Final memory sample
        current = self.process.memory_info().rss
        self._peak_memory = max(self._peak_memory, current)
        return False

    def _run(self) -> None:
        while not self._stop.wait(self.sample_interval):
            self.sample()

    @property
    def elapsed_sec(self) -> float:
        """Elapsed time in seconds."""
        if self._monitoring:
            return time.perf_counter() - self._start_time
        return self._end_time - self._start_time

    @property
    def peak_memory_bytes(self) -> int:
        """Peak memory usage."""
        return self._peak_memory

    @property
    def cpu_time_sec(self) -> float:
        """Total CPU time used."""
        if not self._monitoring and self._end_time:
            return self._end_cpu_time
        current = self.process.cpu_times()
        user = current.user - self._start_cpu_times.user
        system = current.system - self._start_cpu_times.system
        return user + system

    @property
    def cpu_utilization_percent(self) -> float:
        """Average CPU utilization over the monitored interval."""
        elapsed = self.elapsed_sec
        return 100.0 * self.cpu_time_sec / elapsed if elapsed > 0 else 0.0

    def sample(self) -> None:
        """Take a memory sample."""
        if self._monitoring:
            current = self.process.memory_info().rss
            self._peak_memory = max(self._peak_memory, current)

    def to_dict(self) -> Dict[str, float]:
        return {
            "elapsed_sec": self.elapsed_sec,
            "cpu_time_sec": self.cpu_time_sec,
            "cpu_utilization_percent": self.cpu_utilization_percent,
            "peak_memory_bytes": self.peak_memory_bytes,
            "start_memory_bytes": self._start_memory,
        }
