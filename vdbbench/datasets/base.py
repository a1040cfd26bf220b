"""
Loader for vector datasets in the ANN-Benchmarks HDF5 format.

HDF5 keys: ``train`` (reference vectors) and ``test`` (query vectors).
Ground truth is always recomputed by brute force.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import h5py
import numpy as np
from numpy.typing import NDArray
from scipy.spatial.distance import cdist

logger = logging.getLogger(__name__)


class AnnBenchmarkDataset:
    """
    Read-only view of an ANN-Benchmarks dataset.

    Vectors are loaded lazily on first access and never mutated afterwards,
    so one instance can be shared by all worker threads.

    Attributes:
        path: Path of the HDF5 file (``None`` for in-memory datasets)
        name: Dataset name, e.g. ``gist-960-euclidean``
    """

    def __init__(self, path: Union[str, Path], name: Optional[str] = None):
        """
        Initialize the dataset loader.

        Args:
            path: Path to the .hdf5 file
            name: Dataset name. If None, inferred from the filename.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        self.path: Optional[Path] = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Dataset file not found: {path}")
        self.name = name or self.path.stem

        self._vectors: Optional[NDArray[np.float32]] = None
        self._queries: Optional[NDArray[np.float32]] = None

    @classmethod
    def from_arrays(
        cls,
        vectors: NDArray[np.float32],
        queries: NDArray[np.float32],
        name: str = "in-memory",
    ) -> "AnnBenchmarkDataset":
        """Build a dataset from arrays already in memory."""
        dataset = cls.__new__(cls)
        dataset.path = None
        dataset.name = name
        dataset._vectors = np.ascontiguousarray(vectors, dtype=np.float32)
        dataset._queries = np.ascontiguousarray(queries, dtype=np.float32)
        return dataset

    def _read(self, key: str, dtype) -> np.ndarray:
        if self.path is None:
            raise KeyError(f"in-memory dataset has no {key!r} data")
        logger.info("Loading %s/%s", self.path, key)
        with h5py.File(self.path, "r") as f:
            return np.array(f[key], dtype=dtype)

    @property
    def vectors(self) -> NDArray[np.float32]:
        """Reference vectors (lazy loading)."""
        if self._vectors is None:
            self._vectors = self._read("train", np.float32)
        return self._vectors

    @property
    def queries(self) -> NDArray[np.float32]:
        """Query vectors (lazy loading)."""
        if self._queries is None:
            self._queries = self._read("test", np.float32)
        return self._queries

    @property
    def num_vectors(self) -> int:
        if self._vectors is None and self.path is not None:
            return self.shape("train")[0]
        return len(self.vectors)

    @property
    def num_queries(self) -> int:
        if self._queries is None and self.path is not None:
            return self.shape("test")[0]
        return len(self.queries)

    @property
    def dimensions(self) -> int:
        if self._vectors is None and self.path is not None:
            return self.shape("train")[1]
        return self.vectors.shape[1]

    def shape(self, key: str) -> Tuple[int, ...]:
        """Shape of an HDF5 dataset without loading it."""
        with h5py.File(self.path, "r") as f:
            return tuple(f[key].shape)

    def iter_batches(self, batch_size: int) -> Iterator[Tuple[int, NDArray[np.float32]]]:
        """
        Yield batches of reference vectors.

        Args:
            batch_size: Number of vectors per batch

        Yields:
            Tuple of (start_id, vectors)
        """
        vectors = self.vectors
        for start in range(0, len(vectors), batch_size):
            yield start, vectors[start:start + batch_size]

    def exact_neighbors(
        self,
        query: NDArray[np.float32],
        k: int,
        chunk_size: int = 65536,
    ) -> NDArray[np.int64]:
        """
        Compute the exact top-k neighbors of one query by euclidean distance.

        Ties are broken by the lower id so results are deterministic.

        Args:
            query: Query vector
            k: Number of neighbors
            chunk_size: Reference vectors compared per step

        Returns:
            Neighbor ids ordered by increasing distance (``min(k, N)`` long)
        """
        vectors = self.vectors
        k = min(k, len(vectors))
        if k == 0:
            return np.empty(0, dtype=np.int64)

        query = np.asarray(query, dtype=np.float32).reshape(1, -1)
        candidate_ids = []
        candidate_dists = []
        for start in range(0, len(vectors), chunk_size):
            chunk = vectors[start:start + chunk_size]
            distances = cdist(query, chunk, metric="sqeuclidean")[0]
            idx = np.lexsort((np.arange(len(chunk)), distances))[:k]
            candidate_ids.append(idx + start)
            candidate_dists.append(distances[idx])

        ids = np.concatenate(candidate_ids)
        dists = np.concatenate(candidate_dists)
        order = np.lexsort((ids, dists))[:k]
        return ids[order].astype(np.int64)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
