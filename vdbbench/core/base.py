"""
Provider contract for vector database adapters.

Adapters do not share a base class. Each one is a self-contained
implementation of the ``VectorDatabase`` protocol and owns the translation of
``FilterSpec`` into its backend's native query language.
"""

from typing import Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from vdbbench.core.types import DocumentPayload, FilterSpec, SearchHit

# (vector id, vector, payload)
IngestionRecord = Tuple[int, NDArray[np.float32], DocumentPayload]


@runtime_checkable
class VectorDatabase(Protocol):
    """
    Capability shared by all backends.

    Contract for ``search``:
        - hits are ordered by increasing euclidean distance
        - at most ``k`` hits are returned
        - ``filter`` of ``None`` means no filter; a non-empty ``FilterSpec`` is
          translated with the same boolean semantics on every backend
        - failures raise ``BackendError`` and are never reported as an empty
          result
    """

    name: str

    def initialize(self) -> bool:
        """Create the collection if missing; return whether ingestion is needed."""
        ...

    def prepare_ingestion(self) -> None:
        ...

    def upsert(self, vector_id: int, vector: NDArray[np.float32], payload: DocumentPayload) -> None:
        ...

    def upsert_batch(self, records: Iterable[IngestionRecord]) -> None:
        ...

    def finish_ingestion(self, timeout_sec: float) -> None:
        """Block until the index is ready for querying."""
        ...

    def search(
        self,
        query_vector: NDArray[np.float32],
        filter: Optional[FilterSpec],
        k: int,
        ef: int,
        fetch_payload: bool = False,
    ) -> List[SearchHit]:
        ...

    def close(self) -> None:
        ...


def normalize_hits(hits: Sequence[SearchHit], k: int) -> List[SearchHit]:
    """Order hits by increasing distance and truncate to ``k``."""
    return sorted(hits, key=lambda hit: (hit.distance, hit.id))[:k]

