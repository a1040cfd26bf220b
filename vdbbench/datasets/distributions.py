"""
Samplers for synthetic payloads and query filters.

Every sampler takes the random generator as an explicit argument. Nothing in
this module keeps hidden random state, so the output depends only on the
settings and the generator passed in.
"""

import string
from typing import List, Sequence

import numpy as np

from vdbbench.core.config import DatePopulationSettings, LabelPopulationSettings, RangeDistributionSettings
from vdbbench.core.exceptions import GenerationError
from vdbbench.core.types import DateFilter, LabelFilter, Labels

MAX_UNIQUE_SAMPLES = 512

LINK_ALPHABET = string.ascii_letters + string.digits
LINK_LENGTH = 32


def _cdf(probabilities: Sequence[float]) -> np.ndarray:
    weights = np.asarray(probabilities, dtype=np.float64)
    cdf = np.cumsum(weights / weights.sum())
    cdf[-1] = 1.0
    return cdf


def sample_index(rng: np.random.Generator, cdf: np.ndarray) -> int:
    """Draw an index from a discrete distribution given by its cumulative weights."""
    return int(np.searchsorted(cdf, rng.random(), side="right"))


def sample_link(rng: np.random.Generator) -> str:
    chars = rng.integers(0, len(LINK_ALPHABET), size=LINK_LENGTH)
    return "".join(LINK_ALPHABET[i] for i in chars)


class RangeSampler:
    """Samples integers from ``[range_min, range_max]``."""

    def __init__(self, settings: RangeDistributionSettings, range_min: int, range_max: int):
        if range_min >= range_max:
            raise GenerationError("range_min must be < range_max")
        self.settings = settings
        self.range_min = range_min
        self.range_max = range_max
        self.range_len = float(range_max - range_min)

    def sample(self, rng: np.random.Generator) -> int:
        if self.settings.type == "uniform":
            return int(rng.integers(self.range_min, self.range_max, endpoint=True))

        mean = self.range_len * self.settings.mean
        std = self.range_len * self.settings.std
        point = float(np.round(rng.normal(mean, std)))
        return self.range_min + int(self._fold(point, mean))

    def _fold(self, point: float, mean: float) -> float:
        """Fold samples that fall outside the range back towards the mean."""
        if not 0 < mean < self.range_len:
            return min(max(point, 0.0), self.range_len)
        while point < 0:
            point += mean
        while point > self.range_len:
            point = mean + (point - self.range_len)
        return point


class DateSampler:
    """Publication dates and date range filters."""

    def __init__(self, settings: DatePopulationSettings):
        self.settings = settings
        self.values = RangeSampler(settings.sample_distribution, settings.min, settings.max)
        self.lower = RangeSampler(
            settings.filters.lower_bound_sample_distribution, settings.min, settings.max
        )
        self.upper = RangeSampler(
            settings.filters.upper_bound_sample_distribution, settings.min, settings.max
        )

    def sample(self, rng: np.random.Generator) -> int:
        return self.values.sample(rng)

    def sample_filter(self, rng: np.random.Generator) -> DateFilter:
        lower = upper = None
        if rng.random() < self.settings.filters.has_lower_bound:
            lower = self.lower.sample(rng)
        if rng.random() < self.settings.filters.has_upper_bound:
            upper = self.upper.sample(rng)
        if lower is not None and upper is not None and lower > upper:
            lower, upper = upper, lower
        return DateFilter(lower_bound=lower, upper_bound=upper)


class LabelSampler:
    """
    Labels drawn from a population following Zipf's law.

    Label ``i`` (0-based) has weight ``1 / (i + 1) ** s``, so low indices are
    the most popular authors or tags.
    """

    def __init__(self, settings: LabelPopulationSettings):
        self.settings = settings
        self.population = settings.population
        ranks = np.arange(1, self.population + 1, dtype=np.float64)
        self._label_cdf = _cdf(ranks ** -settings.zipfs_law_pmf.s)
        self._count_cdf = _cdf(settings.property_count_distribution)
        self._include_cdf = _cdf(settings.filters.include_count_distribution)
        self._exclude_cdf = _cdf(settings.filters.exclude_count_distribution)

    def sample_unique(self, n: int, rng: np.random.Generator) -> List[int]:
        """Draw ``n`` distinct labels by rejection sampling."""
        if n > self.population // 2:
            raise GenerationError(
                f"cannot draw {n} unique labels from a population of {self.population}"
            )
        if n > MAX_UNIQUE_SAMPLES:
            raise GenerationError(f"label sampling supports at most {MAX_UNIQUE_SAMPLES} labels, got {n}")
        labels: List[int] = []
        while len(labels) < n:
            label = sample_index(rng, self._label_cdf)
            if label not in labels:
                labels.append(label)
        return labels

    def sample(self, rng: np.random.Generator) -> Labels:
        n = sample_index(rng, self._count_cdf)
        return tuple(self.sample_unique(n, rng))

    def sample_filter(self, rng: np.random.Generator) -> LabelFilter:
        # Include and exclude come from one unique draw, so they are disjoint.
        nr_include = sample_index(rng, self._include_cdf)
        nr_exclude = sample_index(rng, self._exclude_cdf)
        labels = self.sample_unique(nr_include + nr_exclude, rng)
        return LabelFilter(include=tuple(labels[:nr_include]), exclude=tuple(labels[nr_include:]))
