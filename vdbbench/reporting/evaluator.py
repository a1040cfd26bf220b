"""
Offline recall/precision evaluation of collected result logs.

Only unfiltered queries are scored: the ground truth is the exact top-k of the
whole reference set, which is not the right answer for a filtered query.
"""

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

import numpy as np
from rich.console import Console

from vdbbench.benchmark.result_log import RESULT_LOG_NAME, read_result_log
from vdbbench.core.exceptions import BenchmarkIdError, DataIntegrityError
from vdbbench.core.identifier import parse
from vdbbench.core.types import ResultLogEntry
from vdbbench.datasets.base import AnnBenchmarkDataset
from vdbbench.metrics.quality import compute_precision, compute_recall_at_k
from vdbbench.metrics.stats import RunningStats

logger = logging.getLogger(__name__)
console = Console()

RECALL_FILE_NAME = "recall.json"


def summarize(values: List[float]) -> Dict[str, float]:
    """count, mean, std, min, max, p50 and p95 of a list of scores."""
    if not values:
        return {"count": 0, "mean": 0.0, "std": 0.0, "min": 0.0, "max": 0.0, "p50": 0.0, "p95": 0.0}
    stats = RunningStats(values)
    array = np.array(values)
    return {
        "count": stats.count,
        "mean": stats.mean,
        "std": stats.std,
        "min": stats.min,
        "max": stats.max,
        "p50": float(np.percentile(array, 50)),
        "p95": float(np.percentile(array, 95)),
    }


class RecallEvaluator:
    """
    Scores result log entries against exact nearest neighbors.

    Exact neighbors are computed by brute force over the ``train`` set and
    cached per ``(query_index, k)``.
    """

    def __init__(self, dataset: AnnBenchmarkDataset):
        self.dataset = dataset
        self._truth: Dict[Tuple[int, int], List[int]] = {}

    @property
    def num_documents(self) -> int:
        return self.dataset.num_vectors

    def true_neighbors(self, query_index: int, k: int) -> List[int]:
        key = (query_index, k)
        if key not in self._truth:
            query = self.dataset.queries[query_index]
            self._truth[key] = self.dataset.exact_neighbors(query, k).tolist()
        return self._truth[key]

    def score(self, entry: ResultLogEntry, k: int) -> Tuple[float, float]:
        """
        Compute (recall, precision) of one entry.

        Raises:
            DataIntegrityError: If the entry references a query or document
                that does not exist
        """
        if not 0 <= entry.query_index < self.dataset.num_queries:
            raise DataIntegrityError(
                f"query index {entry.query_index} outside [0, {self.dataset.num_queries})"
            )
        num_documents = self.num_documents
        unknown: Set[int] = {i for i in entry.returned_ids if not 0 <= i < num_documents}
        if unknown:
            raise DataIntegrityError(
                f"returned ids {sorted(unknown)[:5]} outside [0, {num_documents})"
            )
        truth = self.true_neighbors(entry.query_index, k)
        return (
            compute_recall_at_k(entry.returned_ids, truth, k),
            compute_precision(entry.returned_ids, truth),
        )

    def evaluate_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Evaluate one ``recall_data.jsonl``.

        Returns:
            Aggregates overall and per benchmark id, plus skip counters
        """
        path = Path(path)
        recall: Dict[str, List[float]] = defaultdict(list)
        precision: Dict[str, List[float]] = defaultdict(list)
        counters = {"filtered": 0, "failed": 0, "excluded": 0}
        k_by_id: Dict[str, Optional[int]] = {}

        for entry in read_result_log(path):
            if entry.benchmark_id not in k_by_id:
                k_by_id[entry.benchmark_id] = self._scored_k(entry.benchmark_id)
            k = k_by_id[entry.benchmark_id]
            if k is None:
                counters["filtered"] += 1
                continue
            if entry.failed:
                counters["failed"] += 1
                continue
            try:
                entry_recall, entry_precision = self.score(entry, k)
            except DataIntegrityError as e:
                logger.error("%s: %s query %d: %s", path, entry.benchmark_id, entry.query_index, e)
                counters["excluded"] += 1
                continue
            recall[entry.benchmark_id].append(entry_recall)
            precision[entry.benchmark_id].append(entry_precision)

        all_recall = [value for values in recall.values() for value in values]
        all_precision = [value for values in precision.values() for value in values]
        return {
            "overall": {"recall": summarize(all_recall), "precision": summarize(all_precision)},
            "benchmarks": {
                benchmark_id: {
                    "recall": summarize(recall[benchmark_id]),
                    "precision": summarize(precision[benchmark_id]),
                }
                for benchmark_id in sorted(recall)
            },
            "skipped": counters,
        }

    @staticmethod
    def _scored_k(benchmark_id: str) -> Optional[int]:
        """k of an unfiltered benchmark, None if its entries are not scored."""
        try:
            parsed = parse(benchmark_id)
        except BenchmarkIdError as e:
            logger.warning("Not scoring entries of %r: %s", benchmark_id, e)
            return None
        return None if parsed.use_filters else parsed.k


def evaluate_reports(
    root: Union[str, Path],
    dataset: AnnBenchmarkDataset,
    force: bool = False,
) -> Dict[str, Dict[str, Any]]:
    """
    Evaluate every result log below ``root``.

    ``recall.json`` is written next to each log. An existing ``recall.json``
    is reported as is unless ``force`` is set.

    Args:
        root: Directory to walk (or a single log file)
        dataset: Dataset the logs were produced with
        force: Recompute existing results

    Returns:
        Mapping of log path to its evaluation
    """
    root = Path(root)
    if not root.exists():
        raise FileNotFoundError(f"No such report directory: {root}")
    logs = [root] if root.is_file() else sorted(root.rglob(RESULT_LOG_NAME))

    evaluator = RecallEvaluator(dataset)
    results = {}
    for log_path in logs:
        recall_file = log_path.with_name(RECALL_FILE_NAME)
        if recall_file.exists() and not force:
            with open(recall_file, encoding="utf-8") as f:
                results[str(log_path)] = json.load(f)
            console.print(f"Stats (stored): {recall_file}")
            continue

        logger.info("Evaluating %s", log_path)
        result = evaluator.evaluate_file(log_path)
        with open(recall_file, "w" if force else "x", encoding="utf-8") as f:
            json.dump(result, f, indent=2)
            f.write("\n")
        results[str(log_path)] = result
        console.print(f"Stats: {recall_file}")
    return results
