"""
Dataset loading and synthetic payload generation.

    - AnnBenchmarkDataset: ANN-Benchmarks HDF5 files (train/test/neighbors)
    - generate_augmented_dataset: seeded payloads and query filters
    - download_dataset: fetch HDF5 files from ann-benchmarks.com
"""

from vdbbench.datasets.base import AnnBenchmarkDataset
from vdbbench.datasets.downloader import KNOWN_DATASETS, download_dataset
from vdbbench.datasets.payloads import (
    AugmentedDataset,
    augmented_path_for,
    generate_augmented_dataset,
    load_augmented_dataset,
)

__all__ = [
    "AnnBenchmarkDataset",
    "KNOWN_DATASETS",
    "download_dataset",
    "AugmentedDataset",
    "augmented_path_for",
    "generate_augmented_dataset",
    "load_augmented_dataset",
]
