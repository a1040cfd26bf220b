"""
Qdrant vector database adapter.

Points are keyed by the fake UUID of their vector index and labels are stored
as UUID strings. The collection uses euclidean distance, so Qdrant scores are
already distances.

Documentation: https://qdrant.tech/documentation/
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from numpy.typing import NDArray
from qdrant_client import QdrantClient, models

from vdbbench.core.base import IngestionRecord, normalize_hits
from vdbbench.core.exceptions import BackendError
from vdbbench.core.ids import fake_uuid_to_index, index_to_fake_uuid, label_to_str
from vdbbench.core.types import DocumentPayload, FilterSpec, LabelFilter, SearchHit
from vdbbench.databases.factory import register_database

logger = logging.getLogger(__name__)

DEFAULT_INDEXING_THRESHOLD = 20_000


def _label_conditions(field: str, labels: LabelFilter):
    must = [
        models.FieldCondition(key=field, match=models.MatchValue(value=label_to_str(label)))
        for label in labels.include
    ]
    must_not = []
    if labels.exclude:
        must_not.append(
            models.FieldCondition(
                key=field,
                match=models.MatchAny(any=[label_to_str(label) for label in labels.exclude]),
            )
        )
    return must, must_not


def qdrant_filter(spec: Optional[FilterSpec]) -> Optional[models.Filter]:
    """
    Translate a filter specification into a Qdrant filter.

    Each included label is its own ``must`` condition, so all of them are
    required. Excluded labels become one ``must_not`` match-any condition.
    """
    if spec is None or spec.is_empty:
        return None

    must: List[models.FieldCondition] = []
    must_not: List[models.FieldCondition] = []

    date = spec.publication_date
    if not date.is_empty:
        must.append(
            models.FieldCondition(
                key="publication_date",
                range=models.Range(gte=date.lower_bound, lte=date.upper_bound),
            )
        )

    for field, labels in (("authors", spec.authors), ("tags", spec.tags)):
        field_must, field_must_not = _label_conditions(field, labels)
        must.extend(field_must)
        must_not.extend(field_must_not)

    return models.Filter(must=must or None, must_not=must_not or None)


@register_database("qdrant")
class QdrantAdapter:
    """Qdrant vector database adapter."""

    name = "qdrant"

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.collection: str = config.get("collection", "content")
        self.vector_size: int = config.get("vector_size", 960)
        self.hnsw: Dict[str, int] = {
            "m": config.get("m", 16),
            "ef_construct": config.get("ef_construction", 100),
        }
        self._client = QdrantClient(
            host=config.get("host", "localhost"),
            port=config.get("port", 6413),
            grpc_port=config.get("grpc_port", 6414),
            prefer_grpc=config.get("prefer_grpc", True),
            timeout=config.get("timeout", 60),
        )

    # =========================================================================
    # Ingestion
    # =========================================================================

    def initialize(self) -> bool:
        """Create the collection if missing; an existing empty collection also needs ingestion."""
        if self._client.collection_exists(self.collection):
            info = self._client.get_collection(self.collection)
            return not info.points_count

        self._client.create_collection(
            collection_name=self.collection,
            vectors_config=models.VectorParams(
                size=self.vector_size,
                distance=models.Distance.EUCLID,
            ),
            hnsw_config=models.HnswConfigDiff(
                m=self.hnsw["m"],
                ef_construct=self.hnsw["ef_construct"],
                on_disk=False,
            ),
            optimizers_config=models.OptimizersConfigDiff(memmap_threshold=6_000_000),
            shard_number=self.config.get("shard_number", 3),
            replication_factor=self.config.get("replication_factor", 1),
            quantization_config=models.ScalarQuantization(
                scalar=models.ScalarQuantizationConfig(type=models.ScalarType.INT8),
            ),
        )
        logger.info("Created collection %s", self.collection)
        return True

    def prepare_ingestion(self) -> None:
        # Disable indexing while bulk loading
        self._client.update_collection(
            collection_name=self.collection,
            optimizers_config=models.OptimizersConfigDiff(indexing_threshold=0),
        )

    def upsert(self, vector_id: int, vector: NDArray[np.float32], payload: DocumentPayload) -> None:
        self.upsert_batch([(vector_id, vector, payload)])

    def upsert_batch(self, records: Iterable[IngestionRecord]) -> None:
        points = [
            models.PointStruct(
                id=str(index_to_fake_uuid(vector_id)),
                vector=np.asarray(vector, dtype=np.float32).tolist(),
                payload=payload.to_document(),
            )
            for vector_id, vector, payload in records
        ]
        self._client.upsert(collection_name=self.collection, points=points, wait=True)

    def finish_ingestion(self, timeout_sec: float) -> None:
        """Re-enable indexing and wait until the collection reports green three times in a row."""
        self._client.update_collection(
            collection_name=self.collection,
            optimizers_config=models.OptimizersConfigDiff(indexing_threshold=DEFAULT_INDEXING_THRESHOLD),
        )

        start = time.monotonic()
        ready_count = 0
        while time.monotonic() - start < timeout_sec:
            status = self._client.get_collection(self.collection).status
            if status == models.CollectionStatus.GREEN:
                ready_count += 1
                if ready_count >= 3:
                    return
            else:
                ready_count = 0
            time.sleep(1.0)

        raise BackendError(
            self.name,
            f"index not ready after {time.monotonic() - start:.2f}s",
        )

    # =========================================================================
    # Search
    # =========================================================================

    def search(
        self,
        query_vector: NDArray[np.float32],
        filter: Optional[FilterSpec],
        k: int,
        ef: int,
        fetch_payload: bool = False,
    ) -> List[SearchHit]:
        try:
            response = self._client.query_points(
                collection_name=self.collection,
                query=np.asarray(query_vector, dtype=np.float32).tolist(),
                query_filter=qdrant_filter(filter),
                limit=k,
                search_params=models.SearchParams(hnsw_ef=ef),
                with_payload=fetch_payload,
                consistency=models.ReadConsistencyType.QUORUM,
            )
        except Exception as e:
            raise BackendError(self.name, f"search failed: {e}") from e

        hits = []
        for point in response.points:
            try:
                vector_id = fake_uuid_to_index(point.id)
            except ValueError as e:
                raise BackendError(self.name, f"document without uuid: {point.id!r}") from e
            hits.append(SearchHit(id=vector_id, distance=float(point.score), payload=point.payload or None))
        return normalize_hits(hits, k)

    def close(self) -> None:
        self._client.close()
