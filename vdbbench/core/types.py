"""
Shared data types for the benchmark driver.

All types are plain dataclasses. Payloads and filters are immutable once
generated so they can be shared freely between worker threads.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from vdbbench.core.exceptions import FilterSpecError
from vdbbench.core.ids import label_to_str


Labels = Tuple[int, ...]


def _labels(values: Optional[Iterable[int]]) -> Labels:
    return tuple(int(v) for v in values) if values else ()


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class DocumentPayload:
    """Synthetic metadata attached to one reference vector."""

    publication_date: int
    authors: Labels = ()
    tags: Labels = ()
    link: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "publication_date": self.publication_date,
            "authors": list(self.authors),
            "tags": list(self.tags),
            "link": self.link,
        }

    def to_document(self) -> Dict[str, Any]:
        """Fields as stored by the backends: labels as UUID strings, dates as epoch seconds."""
        return {
            "publication_date": self.publication_date,
            "authors": [label_to_str(label) for label in self.authors],
            "tags": [label_to_str(label) for label in self.tags],
            "link": self.link,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentPayload":
        return cls(
            publication_date=int(data["publication_date"]),
            authors=_labels(data.get("authors")),
            tags=_labels(data.get("tags")),
            link=data.get("link", ""),
        )


# =============================================================================
# Filters
# =============================================================================


@dataclass(frozen=True)
class DateFilter:
    """Closed interval over publication dates; a missing bound is unbounded."""

    lower_bound: Optional[int] = None
    upper_bound: Optional[int] = None

    @property
    def mode(self) -> str:
        if self.lower_bound is not None and self.upper_bound is not None:
            return "both"
        if self.lower_bound is not None:
            return "lower"
        if self.upper_bound is not None:
            return "upper"
        return "none"

    @property
    def is_empty(self) -> bool:
        return self.mode == "none"

    def matches(self, value: int) -> bool:
        if self.lower_bound is not None and value < self.lower_bound:
            return False
        if self.upper_bound is not None and value > self.upper_bound:
            return False
        return True


@dataclass(frozen=True)
class LabelFilter:
    """
    Constraint over a label field.

    Every label in ``include`` must be present on a matching document and no
    label in ``exclude`` may be present. The two sets must be disjoint.
    """

    include: Labels = ()
    exclude: Labels = ()

    def __post_init__(self):
        overlap = set(self.include) & set(self.exclude)
        if overlap:
            raise FilterSpecError(
                f"labels {sorted(overlap)} are both included and excluded"
            )
        if len(set(self.include)) != len(self.include) or len(set(self.exclude)) != len(self.exclude):
            raise FilterSpecError("filter labels must be unique")

    @property
    def is_empty(self) -> bool:
        return not self.include and not self.exclude

    def matches(self, labels: Iterable[int]) -> bool:
        present = set(labels)
        return all(label in present for label in self.include) and not any(
            label in present for label in self.exclude
        )

    def to_dict(self) -> Dict[str, List[int]]:
        return {"include": list(self.include), "exclude": list(self.exclude)}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LabelFilter":
        data = data or {}
        return cls(include=_labels(data.get("include")), exclude=_labels(data.get("exclude")))


@dataclass(frozen=True)
class FilterSpec:
    """Structured predicate over the synthetic payload of a document."""

    publication_date: DateFilter = field(default_factory=DateFilter)
    authors: LabelFilter = field(default_factory=LabelFilter)
    tags: LabelFilter = field(default_factory=LabelFilter)

    @property
    def is_empty(self) -> bool:
        """True if no constraint is set, which is equivalent to no filter at all."""
        return self.publication_date.is_empty and self.authors.is_empty and self.tags.is_empty

    def matches(self, payload: DocumentPayload) -> bool:
        return (
            self.publication_date.matches(payload.publication_date)
            and self.authors.matches(payload.authors)
            and self.tags.matches(payload.tags)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "publication_date": {
                "lower_bound": self.publication_date.lower_bound,
                "upper_bound": self.publication_date.upper_bound,
            },
            "authors": self.authors.to_dict(),
            "tags": self.tags.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterSpec":
        date = data.get("publication_date") or {}
        return cls(
            publication_date=DateFilter(
                lower_bound=date.get("lower_bound"),
                upper_bound=date.get("upper_bound"),
            ),
            authors=LabelFilter.from_dict(data.get("authors")),
            tags=LabelFilter.from_dict(data.get("tags")),
        )


# =============================================================================
# Queries and Results
# =============================================================================


@dataclass(frozen=True)
class QueryRecord:
    """One query issued by the load driver, replayable against every provider."""

    query_index: int
    filter: Optional[FilterSpec]
    k: int
    ef: int
    fetch_payload: bool = False


@dataclass
class SearchHit:
    """A single search result, normalized to euclidean distance."""

    id: int
    distance: float
    payload: Optional[Dict[str, Any]] = None


@dataclass
class ResultLogEntry:
    """One line of ``recall_data.jsonl``."""

    benchmark_id: str
    query_index: int
    returned_ids: List[int]
    latency_ms: float
    payload_present: bool = False
    task: int = 0
    sequence: int = 0
    started_at: float = 0.0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "benchmark_id": self.benchmark_id,
            "query_index": self.query_index,
            "returned_ids": list(self.returned_ids),
            "latency_ms": self.latency_ms,
            "payload_present": self.payload_present,
            "task": self.task,
            "sequence": self.sequence,
            "started_at": self.started_at,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResultLogEntry":
        return cls(
            benchmark_id=data["benchmark_id"],
            query_index=int(data["query_index"]),
            returned_ids=[int(i) for i in data.get("returned_ids", [])],
            latency_ms=float(data.get("latency_ms", 0.0)),
            payload_present=bool(data.get("payload_present", False)),
            task=int(data.get("task", 0)),
            sequence=int(data.get("sequence", 0)),
            started_at=float(data.get("started_at", 0.0)),
            error=data.get("error"),
        )
