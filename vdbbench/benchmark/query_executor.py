"""
Query sampling and concurrent execution for benchmark runs.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from vdbbench.core.base import VectorDatabase
from vdbbench.core.config import QueryParameters
from vdbbench.core.exceptions import BackendError
from vdbbench.core.types import FilterSpec, QueryRecord, ResultLogEntry
from vdbbench.benchmark.result_log import ResultLogSink

logger = logging.getLogger(__name__)


class QuerySampler:
    """
    Builds the per-task query records of one benchmark configuration.

    Task ``t`` draws its query indices from a generator seeded with
    ``(seed, t)``, so the same records are produced for every provider and
    replaying a configuration issues identical queries.
    """

    def __init__(
        self,
        num_queries: int,
        query_filters: Optional[Sequence[FilterSpec]] = None,
        seed: int = 42,
    ):
        """
        Initialize the sampler.

        Args:
            num_queries: Size of the test set
            query_filters: Generated filter per test vector (required for
                filtered runs)
            seed: Sampler seed
        """
        if num_queries < 1:
            raise ValueError("the test set is empty")
        if query_filters is not None and len(query_filters) != num_queries:
            raise ValueError(
                f"{len(query_filters)} query filters for {num_queries} test vectors"
            )
        self.num_queries = num_queries
        self.query_filters = query_filters
        self.seed = seed

    def records_for_task(
        self,
        params: QueryParameters,
        task: int,
        use_filters: bool = False,
    ) -> List[QueryRecord]:
        if use_filters and self.query_filters is None:
            raise ValueError("filtered runs need the generated query filters")

        rng = np.random.default_rng([self.seed, task])
        indices = rng.integers(0, self.num_queries, size=params.queries_per_task)

        records = []
        for index in indices:
            spec = self.query_filters[index] if use_filters else None
            records.append(
                QueryRecord(
                    query_index=int(index),
                    filter=spec if spec is not None and not spec.is_empty else None,
                    k=params.k,
                    ef=params.ef,
                    fetch_payload=params.fetch_payload,
                )
            )
        return records

    def records_by_task(
        self,
        params: QueryParameters,
        use_filters: bool = False,
    ) -> List[List[QueryRecord]]:
        """Records for all ``params.num_tasks`` workers."""
        return [
            self.records_for_task(params, task, use_filters)
            for task in range(params.num_tasks)
        ]


class QueryExecutor:
    """
    Drives concurrent query load against one database.

    One worker thread per task issues its records sequentially with blocking
    calls. Workers share nothing but the result sink.
    """

    def __init__(self, db: VectorDatabase, queries: NDArray[np.float32]):
        """
        Initialize query executor.

        Args:
            db: Vector database adapter
            queries: Test set query vectors
        """
        self.db = db
        self.queries = queries

    def execute(
        self,
        benchmark_id: str,
        records_by_task: Sequence[Sequence[QueryRecord]],
        sink: ResultLogSink,
    ) -> List[ResultLogEntry]:
        """
        Run all tasks concurrently.

        Args:
            benchmark_id: Rendered identifier stamped on every entry
            records_by_task: Records for each worker, in issuance order
            sink: Open result log

        Returns:
            All entries, ordered by task then sequence
        """
        if not records_by_task:
            return []

        with ThreadPoolExecutor(max_workers=len(records_by_task)) as executor:
            futures = [
                executor.submit(self._run_task, benchmark_id, task, records, sink)
                for task, records in enumerate(records_by_task)
            ]
            results = [future.result() for future in futures]

        entries = [entry for task_entries in results for entry in task_entries]
        failures = sum(1 for entry in entries if entry.failed)
        if failures:
            logger.warning("%s: %d of %d queries failed", benchmark_id, failures, len(entries))
        return entries

    def _run_task(
        self,
        benchmark_id: str,
        task: int,
        records: Sequence[QueryRecord],
        sink: ResultLogSink,
    ) -> List[ResultLogEntry]:
        entries = []
        for sequence, record in enumerate(records):
            entry = self.execute_single(benchmark_id, record, task, sequence)
            sink.submit(entry)
            entries.append(entry)
        return entries

    def execute_single(
        self,
        benchmark_id: str,
        record: QueryRecord,
        task: int = 0,
        sequence: int = 0,
    ) -> ResultLogEntry:
        """Issue one query; a backend failure yields an entry with ``error`` set."""
        query_vector = self.queries[record.query_index]
        started_at = time.time()
        start = time.perf_counter()
        try:
            hits = self.db.search(
                query_vector,
                record.filter,
                record.k,
                record.ef,
                fetch_payload=record.fetch_payload,
            )
        except BackendError as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.debug("Query %d failed: %s", record.query_index, e)
            return ResultLogEntry(
                benchmark_id=benchmark_id,
                query_index=record.query_index,
                returned_ids=[],
                latency_ms=latency_ms,
                task=task,
                sequence=sequence,
                started_at=started_at,
                error=str(e),
            )
        latency_ms = (time.perf_counter() - start) * 1000

        return ResultLogEntry(
            benchmark_id=benchmark_id,
            query_index=record.query_index,
            returned_ids=[hit.id for hit in hits],
            latency_ms=latency_ms,
            payload_present=any(hit.payload is not None for hit in hits),
            task=task,
            sequence=sequence,
            started_at=started_at,
        )
