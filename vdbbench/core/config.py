"""
Configuration management for the benchmark driver.

This module handles loading and validating the driver configuration
(``config/default.yaml``) and the payload generation settings
(``config/generation.yaml``).
"""

import calendar
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from vdbbench.core.exceptions import GenerationError

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"

MAX_LABEL_POPULATION = 1_000_000


# =============================================================================
# Driver Configuration Models
# =============================================================================


class DatasetConfig(BaseModel):
    """Location of the ann-benchmarks vector file."""

    vectors_file: str = Field(
        default="./data/gist-960-euclidean.hdf5", description="HDF5 file with train/test/neighbors"
    )
    data_dir: str = Field(default="./data", description="Download directory")


class ReportsConfig(BaseModel):
    """Configuration for report output."""

    root: str = Field(default="./reports", description="Reports root directory")


class IngestionConfig(BaseModel):
    """HNSW build parameters and ingestion settings."""

    m: int = Field(default=16, ge=1, description="HNSW max links per node")
    ef_construction: int = Field(default=100, ge=1, description="HNSW build-time candidates")
    batch_size: int = Field(default=100, ge=1, description="Documents per upsert batch")
    finish_timeout_sec: float = Field(default=900.0, gt=0, description="Wait for index readiness")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


class LimitsConfig(BaseModel):
    """Resource limits of the cluster under test, recorded in benchmark identifiers."""

    cpu: float = Field(default_factory=lambda: _env_float("DOCKER_LIMIT_CPUS", 4.0), ge=0)
    memory_gb: float = Field(default_factory=lambda: _env_float("DOCKER_LIMIT_MEM", 8.0), ge=0)


class QueryParameters(BaseModel):
    """One entry of the benchmark plan."""

    k: int = Field(ge=1, description="Number of neighbors")
    ef: int = Field(ge=1, description="Query-time candidates (ef or num_candidates)")
    fetch_payload: bool = Field(default=False, description="Return document payloads")
    num_tasks: int = Field(default=5, ge=1, description="Concurrent workers")
    queries_per_task: int = Field(default=10, ge=1, description="Queries issued by each worker")

    @model_validator(mode="after")
    def validate_ef(self):
        if self.ef < self.k:
            raise ValueError(f"ef ({self.ef}) must be >= k ({self.k})")
        return self


def _default_plan() -> List[QueryParameters]:
    plan = [QueryParameters(k=k, ef=k) for k in (20, 50, 80, 100)]
    plan.append(QueryParameters(k=100, ef=100, fetch_payload=True))
    return plan


class BenchmarkConfig(BaseModel):
    """Configuration of the query throughput benchmark."""

    group: str = Field(default="query_throughput", description="Benchmark group name")
    samples: int = Field(default=1, ge=1, description="Repetitions per plan entry")
    sampler_seed: int = Field(default=42, description="Seed for query sampling")
    use_filters: bool = Field(default=False, description="Attach generated filters to queries")
    plan: List[QueryParameters] = Field(default_factory=_default_plan)


class DatabaseConfig(BaseModel):
    """Connection settings per provider."""

    active: str = Field(default="qdrant", description="Active database")
    available: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class Config(BaseModel):
    """Main configuration model."""

    dataset: DatasetConfig = Field(default_factory=DatasetConfig)
    reports: ReportsConfig = Field(default_factory=ReportsConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    benchmark: BenchmarkConfig = Field(default_factory=BenchmarkConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # Paths
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR, exclude=True)

    @field_validator("config_dir", mode="before")
    @classmethod
    def validate_config_dir(cls, v):
        return Path(v) if isinstance(v, str) else v

    def get_database_config(self, db_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Get connection settings for a specific database.

        Args:
            db_name: Database name (defaults to active database)

        Returns:
            Database configuration dictionary (empty if not configured)
        """
        name = db_name or self.database.active
        return dict(self.database.available.get(name.lower(), {}))


# =============================================================================
# Generation Settings Models
# =============================================================================


def _to_epoch(value: Union[int, str, date, datetime]) -> int:
    if isinstance(value, datetime):
        return calendar.timegm(value.utctimetuple())
    if isinstance(value, date):
        return calendar.timegm(value.timetuple())
    if isinstance(value, str):
        return _to_epoch(datetime.fromisoformat(value.replace("Z", "+00:00")))
    return int(value)


def _parse_percentage(value: Any) -> float:
    if isinstance(value, str) and value.endswith("%"):
        number = float(value[:-1])
        if 0 <= number <= 100:
            return number / 100
    raise ValueError(f'expected a percentage like "10%", got {value!r}')


class RangeDistributionSettings(BaseModel):
    """Distribution of values over a closed integer range."""

    type: Literal["uniform", "normal"] = "uniform"
    mean: Optional[float] = Field(default=None, description="Mean as fraction of the range")
    std: Optional[float] = Field(default=None, description="Std deviation as fraction of the range")

    @field_validator("mean", "std", mode="before")
    @classmethod
    def validate_percentage(cls, v):
        return None if v is None else _parse_percentage(v)

    @model_validator(mode="after")
    def validate_normal(self):
        if self.type == "normal" and (self.mean is None or self.std is None):
            raise ValueError("normal distribution requires mean and std")
        return self


def _check_probabilities(values: List[float]) -> List[float]:
    if not values or any(p < 0 for p in values) or sum(values) <= 0:
        raise ValueError("expected non-negative probabilities with a positive sum")
    return values


class DateFilterSettings(BaseModel):
    has_lower_bound: float = Field(ge=0, le=1)
    has_upper_bound: float = Field(ge=0, le=1)
    lower_bound_sample_distribution: RangeDistributionSettings = Field(
        default_factory=RangeDistributionSettings
    )
    upper_bound_sample_distribution: RangeDistributionSettings = Field(
        default_factory=RangeDistributionSettings
    )


class DatePopulationSettings(BaseModel):
    """Publication date population, bounds given as dates or epoch seconds."""

    min: int
    max: int
    sample_distribution: RangeDistributionSettings = Field(default_factory=RangeDistributionSettings)
    filters: DateFilterSettings

    @field_validator("min", "max", mode="before")
    @classmethod
    def validate_epoch(cls, v):
        return _to_epoch(v)

    @model_validator(mode="after")
    def validate_range(self):
        if self.min < 0:
            raise ValueError("only positive epoch times are supported")
        if self.min >= self.max:
            raise ValueError("min must be < max")
        return self


class ZipfSettings(BaseModel):
    s: float = Field(gt=0, description="Zipf's law exponent")


class LabelFilterSettings(BaseModel):
    include_count_distribution: List[float]
    exclude_count_distribution: List[float]

    @field_validator("include_count_distribution", "exclude_count_distribution")
    @classmethod
    def validate_counts(cls, v):
        return _check_probabilities(v)


class LabelPopulationSettings(BaseModel):
    """
    Label (author or tag) population.

    ``property_count_distribution[i]`` is the probability that a document
    carries ``i`` labels; the filter count distributions work the same way.
    """

    population: int = Field(ge=1, le=MAX_LABEL_POPULATION)
    zipfs_law_pmf: ZipfSettings
    property_count_distribution: List[float]
    filters: LabelFilterSettings

    @field_validator("property_count_distribution")
    @classmethod
    def validate_counts(cls, v):
        return _check_probabilities(v)

    @model_validator(mode="after")
    def validate_sample_sizes(self):
        max_allowed = self.population // 2
        max_labels = len(self.property_count_distribution) - 1
        if max_labels > max_allowed:
            raise ValueError(f"cannot sample {max_labels} labels (max allowed: {max_allowed})")
        max_filters = (
            len(self.filters.include_count_distribution) - 1
            + len(self.filters.exclude_count_distribution) - 1
        )
        if max_filters > max_allowed:
            raise ValueError(
                f"cannot sample {max_filters} filter labels (max allowed: {max_allowed})"
            )
        return self


class GenerationSettings(BaseModel):
    """Settings for synthetic payload and filter generation."""

    seed: int = Field(default=42, ge=0)
    publication_date: DatePopulationSettings
    authors: LabelPopulationSettings
    tags: LabelPopulationSettings


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    config_dir: Optional[Union[str, Path]] = None,
) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to main configuration file (default: config/default.yaml)
        config_dir: Directory containing configuration files

    Returns:
        Config object with loaded configuration

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        pydantic.ValidationError: If configuration is invalid
    """
    config_dir = DEFAULT_CONFIG_DIR if config_dir is None else Path(config_dir)
    config_path = config_dir / "default.yaml" if config_path is None else Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_dict = yaml.safe_load(f) or {}

    config_dict["config_dir"] = config_dir

    # Environment overrides the file, matching the container limits
    limits = config_dict.setdefault("limits", {}) or {}
    for key, env in (("cpu", "DOCKER_LIMIT_CPUS"), ("memory_gb", "DOCKER_LIMIT_MEM")):
        if os.environ.get(env):
            limits[key] = float(os.environ[env])
    config_dict["limits"] = limits

    return Config(**config_dict)


def load_generation_settings(
    settings_path: Optional[Union[str, Path]] = None,
) -> GenerationSettings:
    """
    Load payload generation settings.

    Args:
        settings_path: Path to the settings file (default: config/generation.yaml)

    Returns:
        Validated generation settings

    Raises:
        FileNotFoundError: If the settings file doesn't exist
        GenerationError: If the settings are invalid
    """
    path = DEFAULT_CONFIG_DIR / "generation.yaml" if settings_path is None else Path(settings_path)
    if not path.exists():
        raise FileNotFoundError(f"Generation settings not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    try:
        return GenerationSettings(**data)
    except ValidationError as e:
        raise GenerationError(f"invalid generation settings in {path}:\n{e}") from e
