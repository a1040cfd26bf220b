"""
Benchmark execution module.

Provides ingestion, the concurrent load driver and the plan orchestration.
"""

from vdbbench.benchmark.ingestion import ingest_database
from vdbbench.benchmark.query_executor import QueryExecutor, QuerySampler
from vdbbench.benchmark.result_log import RESULT_LOG_NAME, ResultLogSink, read_result_log
from vdbbench.benchmark.runner import BenchmarkRunner

__all__ = [
    "BenchmarkRunner",
    "QueryExecutor",
    "QuerySampler",
    "ResultLogSink",
    "RESULT_LOG_NAME",
    "read_result_log",
    "ingest_database",
]
