"""
Elasticsearch vector database adapter.

Talks to the REST API directly. Vectors are indexed as ``dense_vector`` with
``l2_norm`` similarity, for which Elasticsearch reports
``_score = 1 / (1 + distance ** 2)``.

Documentation: https://www.elastic.co/guide/en/elasticsearch/reference/current/knn-search.html
"""

import json
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import requests
from numpy.typing import NDArray

from vdbbench.core.base import IngestionRecord, normalize_hits
from vdbbench.core.exceptions import BackendError
from vdbbench.core.ids import fake_uuid_to_index, index_to_fake_uuid, label_to_str
from vdbbench.core.types import DocumentPayload, FilterSpec, SearchHit
from vdbbench.databases.factory import register_database

logger = logging.getLogger(__name__)


def score_to_distance(score: float) -> float:
    """Invert the ``l2_norm`` score ``1 / (1 + d^2)``."""
    if score <= 0:
        return math.inf
    return math.sqrt(max(1.0 / score - 1.0, 0.0))


def elastic_filter(spec: Optional[FilterSpec]) -> Optional[Dict[str, Any]]:
    """
    Translate a filter specification into a ``bool`` query.

    Each included label is its own ``term`` clause in ``filter``; excluded
    labels are one ``terms`` clause in ``must_not``.
    """
    if spec is None or spec.is_empty:
        return None

    clauses: List[Dict[str, Any]] = []
    must_not: List[Dict[str, Any]] = []

    date = spec.publication_date
    if not date.is_empty:
        bounds = {}
        if date.lower_bound is not None:
            bounds["gte"] = date.lower_bound
        if date.upper_bound is not None:
            bounds["lte"] = date.upper_bound
        clauses.append({"range": {"publication_date": bounds}})

    for field, labels in (("authors", spec.authors), ("tags", spec.tags)):
        for label in labels.include:
            clauses.append({"term": {field: label_to_str(label)}})
        if labels.exclude:
            must_not.append({"terms": {field: [label_to_str(label) for label in labels.exclude]}})

    return {"bool": {"filter": clauses, "must_not": must_not}}


def elastic_query(
    query_vector: NDArray[np.float32],
    filter: Optional[FilterSpec],
    k: int,
    ef: int,
    fetch_payload: bool,
) -> Dict[str, Any]:
    """Build the ``_search`` request body."""
    knn: Dict[str, Any] = {
        "field": "embedding",
        "query_vector": np.asarray(query_vector, dtype=np.float32).tolist(),
        "k": k,
        # Not the same as HNSW ef, but the closest equivalent
        "num_candidates": ef,
    }
    native_filter = elastic_filter(filter)
    if native_filter is not None:
        knn["filter"] = native_filter
    return {"knn": knn, "size": k, "_source": fetch_payload}


@register_database("elasticsearch")
class ElasticsearchAdapter:
    """Elasticsearch vector database adapter."""

    name = "elasticsearch"

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.base_url: str = config.get("url", "http://localhost:9200").rstrip("/")
        self.index: str = config.get("index", "content")
        self.timeout: float = config.get("timeout", 60)
        self._session = requests.Session()

    def _url(self, *segments: str) -> str:
        return "/".join([self.base_url, *segments])

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            raise BackendError(self.name, f"{method} {url} failed: {e}") from e
        return response

    # =========================================================================
    # Ingestion
    # =========================================================================

    def initialize(self) -> bool:
        try:
            response = self._session.get(self._url(self.index), timeout=self.timeout)
        except requests.RequestException as e:
            raise BackendError(self.name, f"cannot reach {self.base_url}: {e}") from e
        if response.status_code == 200:
            return False
        if response.status_code != 404:
            raise BackendError(self.name, f"unexpected status {response.status_code}: {response.text}")

        self._request("PUT", self._url(self.index), json=self._index_definition())
        logger.info("Created index %s", self.index)
        return True

    def _index_definition(self) -> Dict[str, Any]:
        return {
            "settings": {
                "index": {
                    "number_of_shards": self.config.get("number_of_shards", 3),
                    "number_of_replicas": self.config.get("number_of_replicas", 1),
                },
            },
            "mappings": {
                "dynamic": "strict",
                "properties": {
                    "embedding": {
                        "type": "dense_vector",
                        "dims": self.config.get("vector_size", 960),
                        "index": True,
                        "element_type": "float",
                        "similarity": "l2_norm",
                        "index_options": {
                            "type": "hnsw",
                            "m": self.config.get("m", 16),
                            "ef_construction": self.config.get("ef_construction", 100),
                        },
                    },
                    # epoch seconds instead of a proper date
                    "publication_date": {"type": "long"},
                    "authors": {"type": "keyword"},
                    "tags": {"type": "keyword"},
                    "link": {"type": "keyword"},
                },
            },
        }

    def prepare_ingestion(self) -> None:
        pass

    def upsert(self, vector_id: int, vector: NDArray[np.float32], payload: DocumentPayload) -> None:
        self.upsert_batch([(vector_id, vector, payload)])

    def upsert_batch(self, records: Iterable[IngestionRecord]) -> None:
        lines = []
        for vector_id, vector, payload in records:
            document = payload.to_document()
            document["embedding"] = np.asarray(vector, dtype=np.float32).tolist()
            lines.append(json.dumps({"index": {"_id": str(index_to_fake_uuid(vector_id))}}))
            lines.append(json.dumps(document))
        if not lines:
            return

        response = self._request(
            "POST",
            self._url(self.index, "_bulk"),
            data="\n".join(lines) + "\n",
            headers={"Content-Type": "application/x-ndjson"},
        )
        if response.json().get("errors"):
            raise BackendError(self.name, "bulk request reported item errors")

    def finish_ingestion(self, timeout_sec: float) -> None:
        self._request(
            "GET",
            self._url("_cluster", "health"),
            params={"wait_for_status": "green", "timeout": f"{int(timeout_sec)}s"},
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
        body = elastic_query(query_vector, filter, k, ef, fetch_payload)
        response = self._request("POST", self._url(self.index, "_search"), json=body)

        try:
            raw_hits = response.json()["hits"]["hits"]
            hits = [
                SearchHit(
                    id=fake_uuid_to_index(hit["_id"]),
                    distance=score_to_distance(float(hit["_score"])),
                    payload=hit.get("_source") if fetch_payload else None,
                )
                for hit in raw_hits
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise BackendError(self.name, f"malformed search response: {e}") from e
        return normalize_hits(hits, k)

    def close(self) -> None:
        self._session.close()
