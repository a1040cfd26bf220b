"""Tests for metrics computation and recall evaluation."""

import json

import numpy as np
import pytest

from vdbbench.benchmark.result_log import RESULT_LOG_NAME
from vdbbench.core.types import ResultLogEntry
from vdbbench.datasets.base import AnnBenchmarkDataset
from vdbbench.metrics.quality import compute_precision, compute_recall_at_k
from vdbbench.metrics.stats import RunningStats
from vdbbench.reporting.evaluator import RECALL_FILE_NAME, RecallEvaluator, evaluate_reports
from vdbbench.reporting.writer import ResourceWriter, create_next_dir

UNFILTERED_ID = "qdrant/query_throughput/16:100_4.00:8.00-3:3:p:f-1:1"
FILTERED_ID = "qdrant/query_throughput/16:100_4.00:8.00-3:3:p:F-1:1"


def write_log(path, entries):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a") as f:
        for entry in entries:
            f.write(json.dumps(entry.to_dict()) + "\n")


def entry(benchmark_id, query_index, returned_ids, error=None):
    return ResultLogEntry(
        benchmark_id=benchmark_id,
        query_index=query_index,
        returned_ids=returned_ids,
        latency_ms=1.0,
        error=error,
    )


class TestQualityMetrics:
    """Test quality metrics."""

    def test_recall_partial(self):
        """Test the two out of three example."""
        assert compute_recall_at_k([1, 2, 9], [1, 2, 3], k=3) == pytest.approx(2 / 3)
        assert compute_precision([1, 2, 9], [1, 2, 3]) == pytest.approx(2 / 3)

    def test_recall_perfect(self):
        assert compute_recall_at_k([3, 2, 1], [1, 2, 3], k=3) == 1.0

    def test_recall_no_overlap(self):
        assert compute_recall_at_k([7, 8, 9], [1, 2, 3], k=3) == 0.0
        assert compute_precision([7, 8, 9], [1, 2, 3]) == 0.0

    def test_recall_capped_at_reference_size(self):
        # only two documents exist, so k=10 can find at most two
        assert compute_recall_at_k([0, 1], [1, 0], k=10) == 1.0

    def test_no_ground_truth(self):
        assert compute_recall_at_k([], [], k=10) == 1.0

    def test_short_result_precision(self):
        assert compute_recall_at_k([1], [1, 2, 3], k=3) == pytest.approx(1 / 3)
        assert compute_precision([1], [1, 2, 3]) == 1.0


class TestRunningStats:
    """Test Welford's algorithm."""

    def test_known_values(self):
        stats = RunningStats([1.2, 3.2, 12.3])
        assert stats.count == 3
        assert stats.mean == pytest.approx(5.566666666666667)
        assert stats.std == pytest.approx(4.830688931773144)
        assert stats.sample_std == pytest.approx(5.916361494477272)
        assert stats.min == 1.2
        assert stats.max == 12.3

    def test_matches_numpy(self):
        values = np.random.default_rng(0).standard_normal(1000)
        stats = RunningStats(values)
        assert stats.mean == pytest.approx(float(np.mean(values)))
        assert stats.variance == pytest.approx(float(np.var(values)))
        assert stats.sample_variance == pytest.approx(float(np.var(values, ddof=1)))

    def test_empty(self):
        stats = RunningStats()
        assert stats.variance == 0.0
        assert stats.to_dict()["min"] == 0.0


class TestPerformanceMetrics:
    """Test performance metrics."""

    def test_latency_percentiles(self):
        """Test latency percentile computation."""
        from vdbbench.metrics.performance import compute_latency_percentiles

        latencies = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0]
        percentiles = compute_latency_percentiles(latencies)

        assert percentiles["p50"] == 5.5
        assert percentiles["mean"] == 5.5
        assert percentiles["min"] == 1.0
        assert percentiles["max"] == 10.0

    def test_throughput_from_entries(self):
        """Test throughput derived from start times and latencies."""
        from vdbbench.metrics.performance import throughput_from_entries

        entries = [
            ResultLogEntry("x", 0, [], latency_ms=500.0, started_at=100.0),
            ResultLogEntry("x", 1, [], latency_ms=1000.0, started_at=100.5),
            ResultLogEntry("x", 2, [], latency_ms=250.0, started_at=101.0),
            ResultLogEntry("x", 3, [], latency_ms=500.0, started_at=101.5),
        ]
        # first start 100.0, last end 102.0
        assert throughput_from_entries(entries) == pytest.approx(2.0)

    def test_throughput_empty(self):
        from vdbbench.metrics.performance import throughput_from_entries

        assert throughput_from_entries([]) == 0.0


class TestResourceMetrics:
    """Test resource metrics."""

    def test_memory_measurement(self):
        """Test memory measurement."""
        from vdbbench.metrics.resource import measure_memory_usage

        mem = measure_memory_usage()
        assert "rss" in mem
        assert mem["rss"] > 0

    def test_resource_monitor(self):
        """Test ResourceMonitor context manager."""
        from vdbbench.metrics.resource import ResourceMonitor

        with ResourceMonitor(sample_interval_sec=0.01) as monitor:
            # Allocate some memory
            data = np.ones((1000, 1000), dtype=np.float32)
            del data

        assert monitor.elapsed_sec > 0
        assert monitor.peak_memory_bytes > 0
        summary = monitor.to_dict()
        assert summary["cpu_time_sec"] >= 0
        assert summary["peak_memory_bytes"] == monitor.peak_memory_bytes


class TestResourceWriter:
    """Test report directory handling."""

    def test_next_dir_is_hex(self, tmp_path):
        for name in ("0000", "0009"):
            (tmp_path / name).mkdir()
        (tmp_path / "notes").mkdir()
        assert create_next_dir(tmp_path).name == "000a"

    def test_create_writes_open_marker(self, tmp_path):
        writer = ResourceWriter.create(tmp_path, ["qdrant"])
        assert writer.out_dir == tmp_path / "additional_data" / "qdrant" / "0000"
        opened = json.loads((writer.out_dir / "open.json").read_text())
        assert "date" in opened
        assert "git" in opened

        writer.write_close_msg()
        assert (writer.out_dir / "close.json").exists()

    def test_write_file_refuses_overwrite(self, tmp_path):
        writer = ResourceWriter(tmp_path)
        writer.write_file("a.json", {"x": 1})
        with pytest.raises(FileExistsError):
            writer.write_file("a.json", {"x": 2})
        assert json.loads((tmp_path / "a.json").read_text()) == {"x": 1}

    def test_append_line(self, tmp_path):
        writer = ResourceWriter(tmp_path).sub_writer("sub")
        writer.append_line("log.jsonl", {"a": 1})
        writer.append_line("log.jsonl", {"a": 2})
        assert (tmp_path / "sub" / "log.jsonl").read_text() == '{"a":1}\n{"a":2}\n'


class TestRecallEvaluator:
    """Test offline recall evaluation."""

    def setup_method(self):
        # documents on a line: the nearest neighbors of x=i are i, i+-1, ...
        self.vectors = np.array([[float(i), 0.0] for i in range(10)], dtype=np.float32)
        self.queries = np.array([[0.0, 0.0], [9.0, 0.0], [4.2, 0.0]], dtype=np.float32)
        self.dataset = AnnBenchmarkDataset.from_arrays(self.vectors, self.queries)

    def test_true_neighbors(self):
        evaluator = RecallEvaluator(self.dataset)
        assert evaluator.true_neighbors(0, 3) == [0, 1, 2]
        assert evaluator.true_neighbors(2, 3) == [4, 5, 3]
        assert evaluator.true_neighbors(1, 50) == list(range(9, -1, -1))

    def test_scores_only_unfiltered_entries(self, tmp_path):
        path = tmp_path / RESULT_LOG_NAME
        write_log(path, [
            entry(UNFILTERED_ID, 0, [0, 1, 2]),
            entry(UNFILTERED_ID, 1, [9, 8, 0]),
            entry(FILTERED_ID, 0, [5, 6, 7]),
            entry(UNFILTERED_ID, 2, [], error="timeout"),
        ])
        result = RecallEvaluator(self.dataset).evaluate_file(path)

        recall = result["overall"]["recall"]
        assert recall["count"] == 2
        assert recall["mean"] == pytest.approx((1.0 + 2 / 3) / 2)
        assert recall["min"] == pytest.approx(2 / 3)
        assert recall["max"] == 1.0
        assert result["skipped"] == {"filtered": 1, "failed": 1, "excluded": 0}
        assert list(result["benchmarks"]) == [UNFILTERED_ID]

    def test_out_of_range_ids_excluded(self, tmp_path):
        path = tmp_path / RESULT_LOG_NAME
        write_log(path, [
            entry(UNFILTERED_ID, 0, [0, 1, 2]),
            entry(UNFILTERED_ID, 0, [0, 1, 10]),
            entry(UNFILTERED_ID, 7, [0, 1, 2]),
        ])
        result = RecallEvaluator(self.dataset).evaluate_file(path)
        assert result["overall"]["recall"]["count"] == 1
        assert result["skipped"]["excluded"] == 2

    def test_unparseable_id_not_scored(self, tmp_path):
        path = tmp_path / RESULT_LOG_NAME
        write_log(path, [entry("not-an-id", 0, [0, 1, 2])])
        result = RecallEvaluator(self.dataset).evaluate_file(path)
        assert result["overall"]["recall"]["count"] == 0

    def test_evaluate_reports_walks_tree(self, tmp_path):
        first = tmp_path / "qdrant" / "0000" / "query_throughput" / RESULT_LOG_NAME
        second = tmp_path / "vespa" / "0003" / "query_throughput" / RESULT_LOG_NAME
        write_log(first, [entry(UNFILTERED_ID, 0, [0, 1, 2])])
        write_log(second, [entry(UNFILTERED_ID, 0, [0, 1, 5])])

        results = evaluate_reports(tmp_path, self.dataset)
        assert set(results) == {str(first), str(second)}
        assert results[str(second)]["overall"]["recall"]["mean"] == pytest.approx(2 / 3)
        assert (first.parent / RECALL_FILE_NAME).exists()
        assert (second.parent / RECALL_FILE_NAME).exists()

    def test_existing_results_reused_unless_forced(self, tmp_path):
        log = tmp_path / "run" / RESULT_LOG_NAME
        write_log(log, [entry(UNFILTERED_ID, 0, [0, 1, 2])])
        evaluate_reports(tmp_path, self.dataset)

        # more entries arrive after the first evaluation
        write_log(log, [entry(UNFILTERED_ID, 0, [7, 8, 9])])
        stored = evaluate_reports(tmp_path, self.dataset)
        assert stored[str(log)]["overall"]["recall"]["count"] == 1

        recomputed = evaluate_reports(tmp_path, self.dataset, force=True)
        assert recomputed[str(log)]["overall"]["recall"]["count"] == 2
        on_disk = json.loads((log.parent / RECALL_FILE_NAME).read_text())
        assert on_disk["overall"]["recall"]["count"] == 2

    def test_missing_root(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            evaluate_reports(tmp_path / "missing", self.dataset)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
