"""Core module containing shared types, the provider contract, identifiers, and configuration."""

from vdbbench.core.base import VectorDatabase, normalize_hits
from vdbbench.core.config import Config, GenerationSettings, load_config, load_generation_settings
from vdbbench.core.exceptions import (
    BackendError,
    BenchmarkError,
    BenchmarkIdError,
    DataIntegrityError,
    FilterSpecError,
    GenerationError,
)
from vdbbench.core.identifier import BenchmarkId
from vdbbench.core.types import (
    DateFilter,
    DocumentPayload,
    FilterSpec,
    LabelFilter,
    QueryRecord,
    ResultLogEntry,
    SearchHit,
)

__all__ = [
    "VectorDatabase",
    "normalize_hits",
    "Config",
    "GenerationSettings",
    "load_config",
    "load_generation_settings",
    "BackendError",
    "BenchmarkError",
    "BenchmarkIdError",
    "DataIntegrityError",
    "FilterSpecError",
    "GenerationError",
    "BenchmarkId",
    "DateFilter",
    "DocumentPayload",
    "FilterSpec",
    "LabelFilter",
    "QueryRecord",
    "ResultLogEntry",
    "SearchHit",
]
