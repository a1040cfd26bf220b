"""
Benchmark orchestration.

Runs the configured plan against one database:
- every plan entry is one query configuration with its own benchmark id
- each configuration is repeated ``samples`` times with replayable queries
- all query results go to one append-only ``recall_data.jsonl`` per run
- throughput is derived from the log entries afterwards, never measured inline
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from vdbbench.core.base import VectorDatabase
from vdbbench.core.config import Config, QueryParameters, load_config
from vdbbench.core.identifier import BenchmarkId
from vdbbench.core.types import FilterSpec, ResultLogEntry
from vdbbench.benchmark.ingestion import ingest_database
from vdbbench.benchmark.query_executor import QueryExecutor, QuerySampler
from vdbbench.benchmark.result_log import RESULT_LOG_NAME, ResultLogSink
from vdbbench.datasets.base import AnnBenchmarkDataset
from vdbbench.datasets.payloads import AugmentedDataset
from vdbbench.metrics.performance import compute_latency_percentiles, throughput_from_entries
from vdbbench.metrics.resource import ResourceMonitor
from vdbbench.metrics.stats import RunningStats
from vdbbench.reporting.writer import ResourceWriter

logger = logging.getLogger(__name__)
console = Console()


class BenchmarkRunner:
    """
    Main benchmark orchestrator.
    """

    def __init__(
            self,
            config: Optional[Config] = None,
            config_path: Optional[str] = None,
    ):
        self.config = config or load_config(config_path)
        self.results: List[Dict[str, Any]] = []

    def benchmark_id(self, provider: str, params: QueryParameters, use_filters: bool) -> BenchmarkId:
        return BenchmarkId(
            provider=provider,
            bench_group=self.config.benchmark.group,
            m=self.config.ingestion.m,
            ef_construction=self.config.ingestion.ef_construction,
            cpu_limit=self.config.limits.cpu,
            mem_limit=self.config.limits.memory_gb,
            k=params.k,
            ef=params.ef,
            fetch_payload=params.fetch_payload,
            use_filters=use_filters,
            num_tasks=params.num_tasks,
            queries_per_task=params.queries_per_task,
        )

    def ingest(
            self,
            db: VectorDatabase,
            dataset: AnnBenchmarkDataset,
            augmented: AugmentedDataset,
            augmented_file: Optional[Path] = None,
            show_progress: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """Ingest the dataset into ``db`` inside a new run directory."""
        writer = ResourceWriter.create(self.config.reports.root, [db.name])
        result = ingest_database(
            writer,
            db,
            dataset,
            augmented.documents,
            augmented_file=augmented_file,
            batch_size=self.config.ingestion.batch_size,
            finish_timeout_sec=self.config.ingestion.finish_timeout_sec,
            show_progress=show_progress,
        )
        writer.write_close_msg()
        return result

    def run(
            self,
            db: VectorDatabase,
            queries: Sequence,
            query_filters: Optional[Sequence[FilterSpec]] = None,
            use_filters: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run the whole plan against one database.

        Args:
            db: Database under test, already ingested
            queries: Test set query vectors
            query_filters: Generated filter per query vector
            use_filters: Attach filters (defaults to the configured value)

        Returns:
            One summary per plan entry, also written to ``summary.json``
        """
        bench = self.config.benchmark
        use_filters = bench.use_filters if use_filters is None else use_filters

        console.print(f"\n[bold blue]Query throughput: {db.name}[/bold blue]")
        console.print(f"Plan entries: {len(bench.plan)}, samples: {bench.samples}, "
                      f"filters: {'on' if use_filters else 'off'}")

        writer = ResourceWriter.create(self.config.reports.root, [db.name])
        group_writer = writer.sub_writer(bench.group)
        executor = QueryExecutor(db, queries)

        summaries = []
        with ResultLogSink(group_writer.path(RESULT_LOG_NAME)) as sink:
            for params in bench.plan:
                summaries.append(
                    self._run_configuration(executor, sink, db.name, params, use_filters,
                                            len(queries), query_filters)
                )

        group_writer.write_file("summary.json", {"results": summaries})
        writer.write_close_msg()

        self.results.extend(summaries)
        self._print_summary(db.name, summaries)
        return summaries

    def _run_configuration(
            self,
            executor: QueryExecutor,
            sink: ResultLogSink,
            provider: str,
            params: QueryParameters,
            use_filters: bool,
            num_queries: int,
            query_filters: Optional[Sequence[FilterSpec]],
    ) -> Dict[str, Any]:
        bench = self.config.benchmark
        benchmark_id = self.benchmark_id(provider, params, use_filters).render()
        console.print(f"  [yellow]{benchmark_id}[/yellow]")

        throughput = RunningStats()
        all_entries: List[ResultLogEntry] = []
        resources = []
        for sample in range(bench.samples):
            # Same seed per sample on every provider
            sampler = QuerySampler(num_queries, query_filters, seed=bench.sampler_seed + sample)
            records = sampler.records_by_task(params, use_filters)

            with ResourceMonitor() as monitor:
                entries = executor.execute(benchmark_id, records, sink)
            resources.append(monitor.to_dict())

            # Every issued query counts, failed ones included
            qps = throughput_from_entries(entries)
            throughput.update(qps)
            all_entries.extend(entries)
            logger.debug("%s sample %d: %.2f queries/s", benchmark_id, sample, qps)

        succeeded = [e for e in all_entries if not e.failed]
        failures = len(all_entries) - len(succeeded)
        return {
            "benchmark_id": benchmark_id,
            "parameters": params.model_dump(),
            "use_filters": use_filters,
            "samples": bench.samples,
            "queries": len(all_entries),
            "failures": failures,
            "failure_rate": failures / len(all_entries) if all_entries else 0.0,
            "throughput": {
                "mean": throughput.mean,
                "std": throughput.sample_std,
                "min": throughput.min,
                "max": throughput.max,
            },
            "latency_ms": compute_latency_percentiles([e.latency_ms for e in succeeded]),
            "driver_resources": resources,
        }

    def _print_summary(self, provider: str, summaries: List[Dict[str, Any]]) -> None:
        if not summaries: return
        table = Table(title=f"Results: {provider}")
        table.add_column("Benchmark", style="cyan")
        table.add_column("QPS (Mean ± Std)", style="green")
        table.add_column("p50 (ms)", justify="right")
        table.add_column("p95 (ms)", justify="right")
        table.add_column("Failed", justify="right")

        for summary in summaries:
            qps = summary["throughput"]
            latency = summary["latency_ms"]
            table.add_row(
                summary["benchmark_id"],
                f"{qps['mean']:.2f} ± {qps['std']:.2f}",
                f"{latency['p50']:.2f}",
                f"{latency['p95']:.2f}",
                str(summary["failures"]),
            )
        console.print(table)
