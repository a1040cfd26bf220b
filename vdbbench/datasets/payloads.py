"""
Synthetic payload and filter generation.

The augmented dataset stores one ``DocumentPayload`` per reference vector and
one ``FilterSpec`` per query vector. Vectors are not copied: the artifact
references the HDF5 file, which stays the read-only source of vectors.

Generation is deterministic. The same settings and dataset shape always
produce a byte-identical artifact.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
from rich.progress import track

from vdbbench.core.config import GenerationSettings
from vdbbench.core.exceptions import GenerationError
from vdbbench.core.types import DocumentPayload, FilterSpec
from vdbbench.datasets.base import AnnBenchmarkDataset
from vdbbench.datasets.distributions import DateSampler, LabelSampler, sample_link

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
AUGMENTED_SUFFIX = ".augmented.json"


class PayloadGenerator:
    """Samples document payloads and query filters from generation settings."""

    def __init__(self, settings: GenerationSettings):
        self.settings = settings
        self.dates = DateSampler(settings.publication_date)
        self.authors = LabelSampler(settings.authors)
        self.tags = LabelSampler(settings.tags)

    def create_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.settings.seed)

    def sample_document(self, rng: np.random.Generator) -> DocumentPayload:
        return DocumentPayload(
            publication_date=self.dates.sample(rng),
            authors=self.authors.sample(rng),
            tags=self.tags.sample(rng),
            link=sample_link(rng),
        )

    def sample_query(self, rng: np.random.Generator) -> FilterSpec:
        return FilterSpec(
            publication_date=self.dates.sample_filter(rng),
            authors=self.authors.sample_filter(rng),
            tags=self.tags.sample_filter(rng),
        )


@dataclass
class AugmentedDataset:
    """Payloads and query filters generated for one vector file."""

    meta: Dict[str, Any]
    documents: List[DocumentPayload] = field(default_factory=list)
    queries: List[FilterSpec] = field(default_factory=list)

    @property
    def vectors_file(self) -> str:
        return self.meta["vectors_file"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.meta,
            "documents": [d.to_dict() for d in self.documents],
            "queries": [q.to_dict() for q in self.queries],
        }

    def dumps(self) -> str:
        """Canonical serialization (sorted keys, no whitespace)."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")) + "\n"


def augmented_path_for(vectors_file: Union[str, Path]) -> Path:
    """``data/gist-960-euclidean.hdf5`` -> ``data/gist-960-euclidean.augmented.json``."""
    path = Path(vectors_file)
    return path.with_name(path.stem + AUGMENTED_SUFFIX)


def build_augmented_dataset(
    num_documents: int,
    num_queries: int,
    settings: GenerationSettings,
    vectors_file: str = "",
    dimensions: int = 0,
    show_progress: bool = False,
) -> AugmentedDataset:
    """
    Sample payloads for ``num_documents`` vectors and filters for ``num_queries`` queries.

    Documents are sampled first, then queries, from one generator seeded with
    ``settings.seed``.
    """
    generator = PayloadGenerator(settings)
    rng = generator.create_rng()

    documents = [
        generator.sample_document(rng)
        for _ in track(range(num_documents), description="documents", disable=not show_progress)
    ]
    queries = [
        generator.sample_query(rng)
        for _ in track(range(num_queries), description="queries", disable=not show_progress)
    ]

    meta = {
        "format_version": FORMAT_VERSION,
        "seed": settings.seed,
        "vectors_file": vectors_file,
        "documents": num_documents,
        "queries": num_queries,
        "vector_size": dimensions,
        "authors_population": settings.authors.population,
        "tags_population": settings.tags.population,
    }
    return AugmentedDataset(meta=meta, documents=documents, queries=queries)


def write_atomic(path: Path, text: str) -> None:
    """Write via a temporary file in the same directory, then rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def generate_augmented_dataset(
    dataset: AnnBenchmarkDataset,
    settings: GenerationSettings,
    output_path: Optional[Union[str, Path]] = None,
    force: bool = False,
    show_progress: bool = False,
) -> Path:
    """
    Generate and persist the augmented dataset for a vector file.

    Args:
        dataset: Source vectors
        settings: Validated generation settings
        output_path: Artifact path (default: next to the vector file)
        force: Overwrite an existing artifact
        show_progress: Show progress bars

    Returns:
        Path of the written artifact

    Raises:
        GenerationError: If the artifact exists and ``force`` is not set, or
            sampling hits an invalid setting. Nothing is written in that case.
    """
    if output_path is None:
        if dataset.path is None:
            raise GenerationError("output_path is required for in-memory datasets")
        output_path = augmented_path_for(dataset.path)
    output_path = Path(output_path)

    if output_path.exists() and not force:
        raise GenerationError(f"{output_path} already exists (use --force to overwrite)")

    logger.info(
        "Generating payloads for %d documents and %d queries (seed=%d)",
        dataset.num_vectors, dataset.num_queries, settings.seed,
    )
    augmented = build_augmented_dataset(
        dataset.num_vectors,
        dataset.num_queries,
        settings,
        vectors_file=dataset.path.name if dataset.path is not None else dataset.name,
        dimensions=dataset.dimensions,
        show_progress=show_progress,
    )
    write_atomic(output_path, augmented.dumps())
    logger.info("Wrote %s", output_path)
    return output_path


def load_augmented_dataset(path: Union[str, Path]) -> AugmentedDataset:
    """
    Load an augmented dataset artifact.

    Raises:
        FileNotFoundError: If the artifact doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Augmented dataset not found: {path} (run `vdbbench generate` first)")

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    return AugmentedDataset(
        meta=data["meta"],
        documents=[DocumentPayload.from_dict(d) for d in data["documents"]],
        queries=[FilterSpec.from_dict(q) for q in data["queries"]],
    )
