"""
Running statistics.

Welford's online algorithm keeps mean and variance numerically stable without
storing the samples.
"""

import math
from typing import Dict, Iterable, Optional


class RunningStats:
    """
    Online mean/variance accumulator.

    Example:
        stats = RunningStats()
        for value in [1.2, 3.2, 12.3]:
            stats.update(value)
        stats.mean  # 5.5666...
    """

    def __init__(self, values: Optional[Iterable[float]] = None):
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0
        self.min = math.inf
        self.max = -math.inf
        if values is not None:
            for value in values:
                self.update(float(value))

    def update(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)
        self.min = min(self.min, value)
        self.max = max(self.max, value)

    @property
    def variance(self) -> float:
        """Population variance (0 for fewer than one sample)."""
        return self._m2 / self.count if self.count > 0 else 0.0

    @property
    def sample_variance(self) -> float:
        """Unbiased sample variance (0 for fewer than two samples)."""
        return self._m2 / (self.count - 1) if self.count > 1 else 0.0

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)

    @property
    def sample_std(self) -> float:
        return math.sqrt(self.sample_variance)

    def to_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "mean": self.mean,
            "variance": self.variance,
            "sample_variance": self.sample_variance,
            "min": self.min if self.count else 0.0,
            "max": self.max if self.count else 0.0,
        }
