"""
Vespa vector database adapter.

Queries are YQL ``nearestNeighbor`` searches against the ``content`` document
type, ranked by the ``ann`` profile whose relevance is
``closeness = 1 / (1 + distance)``.

Documentation: https://docs.vespa.ai/en/nearest-neighbor-search.html
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import requests
from numpy.typing import NDArray

from vdbbench.core.base import IngestionRecord, normalize_hits
from vdbbench.core.exceptions import BackendError
from vdbbench.core.ids import fake_uuid_to_index, index_to_fake_uuid, label_to_str
from vdbbench.core.types import DateFilter, DocumentPayload, FilterSpec, LabelFilter, SearchHit
from vdbbench.databases.factory import register_database

logger = logging.getLogger(__name__)

# Vespa's default of 0.5s kills queries under load
QUERY_TIMEOUT = "60s"


def closeness_to_distance(relevance: float) -> float:
    if relevance <= 0:
        return float("inf")
    return max(1.0 / relevance - 1.0, 0.0)


def _yql_date_range(field: str, date: DateFilter) -> str:
    if date.is_empty:
        return ""
    lower = "-Infinity" if date.lower_bound is None else str(date.lower_bound)
    upper = "Infinity" if date.upper_bound is None else str(date.upper_bound)
    return f" and range({field}, {lower}, {upper})"


def _yql_labels(field: str, labels: LabelFilter) -> str:
    clause = ""
    if labels.include:
        required = " and ".join(f'{field} contains "{label_to_str(label)}"' for label in labels.include)
        clause += f" and ({required})"
    if labels.exclude:
        excluded = " or ".join(f'{field} contains "{label_to_str(label)}"' for label in labels.exclude)
        clause += f" and !({excluded})"
    return clause


def yql_build_query(
    query_vector: NDArray[np.float32],
    filter: Optional[FilterSpec],
    k: int,
    ef: int,
    fetch_payload: bool,
) -> Dict[str, Any]:
    """
    Build the search request body.

    ``ef`` maps to ``targetHits + exploreAdditionalHits``.
    """
    if ef < k:
        raise ValueError(f"ef ({ef}) must be >= k ({k})")
    selector = "*" if fetch_payload else "id"
    yql = (
        f"select {selector} from content where "
        f"{{hnsw.exploreAdditionalHits:{ef - k}, targetHits:{k}}}"
        f"nearestNeighbor(embedding, query_embedding)"
    )
    if filter is not None and not filter.is_empty:
        yql += _yql_date_range("publication_date", filter.publication_date)
        yql += _yql_labels("authors", filter.authors)
        yql += _yql_labels("tags", filter.tags)

    return {
        "yql": yql,
        "ranking.profile": "ann",
        "input.query(query_embedding)": np.asarray(query_vector, dtype=np.float32).tolist(),
        "hits": k,
        "timeout": QUERY_TIMEOUT,
    }


def parse_search_result(data: Dict[str, Any], k: int, fetch_payload: bool) -> List[SearchHit]:
    """
    Convert a Vespa search response into hits.

    Raises:
        BackendError: If the response is malformed or the number of children
            does not match ``min(totalCount, k)``
    """
    try:
        root = data["root"]
        total_count = int(root["fields"]["totalCount"])
        children = root.get("children", [])
    except (KeyError, TypeError, ValueError) as e:
        raise BackendError("vespa", f"malformed search response: {e}") from e

    if min(total_count, k) != len(children):
        raise BackendError("vespa", f"malformed result ({total_count} != {len(children)})")

    hits = []
    for child in children:
        try:
            fields = child.get("fields", {})
            vector_id = fake_uuid_to_index(fields["id"])
            relevance = float(child.get("relevance", 0.0))
            payload = None
            if fetch_payload:
                payload = {key: value for key, value in fields.items() if key not in ("id", "embedding")}
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise BackendError("vespa", f"malformed search hit {child!r}: {e}") from e
        hits.append(
            SearchHit(
                id=vector_id,
                distance=closeness_to_distance(relevance),
                payload=payload,
            )
        )
    return hits


@register_database("vespa")
class VespaAdapter:
    """Vespa vector database adapter."""

    name = "vespa"

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.base_url: str = config.get("url", "http://localhost:8080").rstrip("/")
        self.namespace: str = config.get("namespace", "default")
        self.document_type: str = config.get("document_type", "content")
        self.timeout: float = config.get("timeout", 65)
        self.ingestion_workers: int = config.get("ingestion_workers", 16)
        self._session = requests.Session()

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
        # The application package is deployed together with the cluster
        return True

    def prepare_ingestion(self) -> None:
        pass

    def upsert(self, vector_id: int, vector: NDArray[np.float32], payload: DocumentPayload) -> None:
        doc_id = str(index_to_fake_uuid(vector_id))
        fields = payload.to_document()
        fields["id"] = doc_id
        fields["embedding"] = np.asarray(vector, dtype=np.float32).tolist()
        url = (
            f"{self.base_url}/document/v1/{self.namespace}/{self.document_type}/docid/{doc_id}"
        )
        self._request("POST", url, json={"fields": fields})

    def upsert_batch(self, records: Iterable[IngestionRecord]) -> None:
        with ThreadPoolExecutor(max_workers=self.ingestion_workers) as executor:
            futures = [executor.submit(self.upsert, *record) for record in records]
            for future in futures:
                future.result()

    def finish_ingestion(self, timeout_sec: float) -> None:
        pass

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
        body = yql_build_query(query_vector, filter, k, ef, fetch_payload)
        # The trailing slash is required: /search/ not /search
        response = self._request("POST", f"{self.base_url}/search/", json=body)
        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(self.name, f"malformed search response: {e}") from e
        return normalize_hits(parse_search_result(data, k, fetch_payload), k)

    def close(self) -> None:
        self._session.close()
