"""
Exact in-process search.

Serves as the reference oracle: it applies ``FilterSpec`` directly to the
stored payloads and ranks all matching vectors by euclidean distance, so its
recall is always 1.0.
"""

import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from vdbbench.core.base import IngestionRecord, normalize_hits
from vdbbench.core.types import DocumentPayload, FilterSpec, SearchHit
from vdbbench.databases.factory import register_database


@register_database("bruteforce")
class BruteForceAdapter:
    """Exact nearest neighbor search over vectors held in memory."""

    name = "bruteforce"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self._lock = threading.Lock()
        self._ids: List[int] = []
        self._vectors: List[NDArray[np.float32]] = []
        self._payloads: List[DocumentPayload] = []
        self._matrix: Optional[NDArray[np.float32]] = None

    @classmethod
    def from_arrays(
        cls,
        vectors: NDArray[np.float32],
        payloads: Optional[Sequence[DocumentPayload]] = None,
    ) -> "BruteForceAdapter":
        adapter = cls()
        if payloads is None:
            payloads = [DocumentPayload(publication_date=0)] * len(vectors)
        adapter.upsert_batch(zip(range(len(vectors)), vectors, payloads))
        return adapter

    def initialize(self) -> bool:
        return not self._ids

    def prepare_ingestion(self) -> None:
        pass

    def upsert(self, vector_id: int, vector: NDArray[np.float32], payload: DocumentPayload) -> None:
        self.upsert_batch([(vector_id, vector, payload)])

    def upsert_batch(self, records: Iterable[IngestionRecord]) -> None:
        with self._lock:
            for vector_id, vector, payload in records:
                self._ids.append(int(vector_id))
                self._vectors.append(np.asarray(vector, dtype=np.float32))
                self._payloads.append(payload)
            self._matrix = None

    def finish_ingestion(self, timeout_sec: float) -> None:
        self._index()

    def _index(self) -> NDArray[np.float32]:
        with self._lock:
            if self._matrix is None:
                self._matrix = np.vstack(self._vectors) if self._vectors else np.empty((0, 0), np.float32)
            return self._matrix

    def search(
        self,
        query_vector: NDArray[np.float32],
        filter: Optional[FilterSpec],
        k: int,
        ef: int,
        fetch_payload: bool = False,
    ) -> List[SearchHit]:
        matrix = self._index()
        if len(matrix) == 0:
            return []

        positions = np.arange(len(matrix))
        if filter is not None and not filter.is_empty:
            positions = np.array(
                [i for i in positions if filter.matches(self._payloads[i])], dtype=np.int64
            )
            if len(positions) == 0:
                return []

        query = np.asarray(query_vector, dtype=np.float64)
        distances = np.sqrt(((matrix[positions].astype(np.float64) - query) ** 2).sum(axis=1))
        hits = [
            SearchHit(
                id=self._ids[i],
                distance=float(d),
                payload=self._payloads[i].to_dict() if fetch_payload else None,
            )
            for i, d in zip(positions, distances)
        ]
        return normalize_hits(hits, k)

    def close(self) -> None:
        pass
