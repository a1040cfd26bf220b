"""
Mass ingestion of the reference vectors and their payloads.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from vdbbench.core.base import VectorDatabase
from vdbbench.core.exceptions import DataIntegrityError
from vdbbench.core.types import DocumentPayload
from vdbbench.datasets.base import AnnBenchmarkDataset
from vdbbench.metrics.stats import RunningStats
from vdbbench.reporting.writer import ResourceWriter

logger = logging.getLogger(__name__)
console = Console()

DEFAULT_BATCH_SIZE = 100
DEFAULT_FINISH_TIMEOUT_SEC = 900.0


def ingest_database(
    writer: ResourceWriter,
    db: VectorDatabase,
    dataset: AnnBenchmarkDataset,
    documents: Sequence[DocumentPayload],
    augmented_file: Optional[Path] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    finish_timeout_sec: float = DEFAULT_FINISH_TIMEOUT_SEC,
    show_progress: bool = True,
) -> Optional[Dict[str, Any]]:
    """
    Upload all reference vectors with their payloads.

    Writes ``ingestion/paths.json``, ``source.json`` and ``times.json`` (batch
    latency statistics) into the run directory.

    Args:
        writer: Writer of the current run
        db: Target database
        dataset: Dataset providing the ``train`` vectors
        documents: Payload for each train vector, in id order
        augmented_file: Artifact the payloads were loaded from
        batch_size: Documents per ``upsert_batch`` call
        finish_timeout_sec: Time allowed for the index to become ready
        show_progress: Show a progress bar

    Returns:
        Contents of ``times.json``, or None if the database already held data

    Raises:
        DataIntegrityError: If payload and vector counts differ
        BackendError: If the backend rejects a batch
    """
    writer = writer.sub_writer("ingestion")
    writer.write_file(
        "paths.json",
        {
            "vectors_file": str(dataset.path) if dataset.path else None,
            "augmented_file": str(augmented_file) if augmented_file else None,
        },
    )

    logger.info("Initializing %s", db.name)
    if not db.initialize():
        console.print(f"[yellow]{db.name} already contains data, skipping ingestion[/yellow]")
        return None

    vectors = dataset.vectors
    num_documents = len(vectors)
    if len(documents) != num_documents:
        raise DataIntegrityError(
            f"{len(documents)} payloads for {num_documents} vectors in {dataset.name}"
        )

    writer.write_file(
        "source.json",
        {
            "dataset": dataset.name,
            "documents": num_documents,
            "vector_size": int(vectors.shape[1]) if num_documents else 0,
            "ingestion_batch_size": batch_size,
        },
    )

    times = RunningStats()
    start = time.perf_counter()

    db.prepare_ingestion()
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
        disable=not show_progress,
    ) as progress:
        task = progress.add_task(f"Ingesting into {db.name}", total=num_documents)
        for batch_start, batch in dataset.iter_batches(batch_size):
            records = [
                (batch_start + offset, vector, documents[batch_start + offset])
                for offset, vector in enumerate(batch)
            ]
            batch_timer = time.perf_counter()
            db.upsert_batch(records)
            times.update(time.perf_counter() - batch_timer)
            progress.advance(task, len(records))

    console.print("Upload finished, waiting for the index to be ready")
    db.finish_ingestion(finish_timeout_sec)
    total = time.perf_counter() - start
    console.print(f"Full ingestion duration: {total:.4f}s")

    result = {"total": total, "dist": times.to_dict()}
    writer.write_file("times.json", result)
    return result
