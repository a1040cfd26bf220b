"""
vdbbench: Filtered ANN Benchmark Driver

Benchmarks approximate nearest neighbor search of vector databases under
metadata filters, payload fetch, and concurrent query load.

Supported Databases:
    - Qdrant
    - Elasticsearch
    - Vespa
    - Brute force (in-process reference oracle)

Dataset:
    - gist-960-euclidean (ANN-Benchmarks HDF5 format)

Workflow:
    1. generate  - synthetic payloads and query filters for the dataset
    2. ingest    - upsert vectors and payloads into a provider
    3. bench     - concurrent query workloads, logged to recall_data.jsonl
    4. recall    - offline recall/precision against brute-force ground truth
"""

__version__ = "0.1.0"

from vdbbench.core.config import Config, load_config
from vdbbench.core.identifier import BenchmarkId
from vdbbench.core.types import (
    DocumentPayload,
    FilterSpec,
    QueryRecord,
    ResultLogEntry,
    SearchHit,
)

__all__ = [
    "Config",
    "load_config",
    "BenchmarkId",
    "DocumentPayload",
    "FilterSpec",
    "QueryRecord",
    "ResultLogEntry",
    "SearchHit",
]
