"""
Compact benchmark identifiers.

An identifier correlates every logged query with the configuration that
produced it. The encoding is kept short because the benchmarking backends
reject identifiers longer than about 80 characters::

    qdrant/query_throughput/16:100_8.00:8.00-10:100:p:f-5:10
    provider/group/M:ef_construction_cpu:mem-k:ef:fetch:filter-tasks:queries
"""

import math
import re
from dataclasses import dataclass
from typing import Dict

from vdbbench.core.exceptions import BenchmarkIdError

MAX_IDENTIFIER_LENGTH = 80

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_INT_RE = re.compile(r"^[1-9][0-9]*$")
_LIMIT_RE = re.compile(r"^(0|[1-9][0-9]*)\.[0-9]{2}$")

_FLAGS: Dict[str, Dict[bool, str]] = {
    "fetch_payload": {True: "P", False: "p"},
    "use_filters": {True: "F", False: "f"},
}


@dataclass(frozen=True)
class BenchmarkId:
    """Parameters encoded by a benchmark identifier."""

    provider: str
    bench_group: str
    m: int
    ef_construction: int
    cpu_limit: float
    mem_limit: float
    k: int
    ef: int
    fetch_payload: bool
    use_filters: bool
    num_tasks: int
    queries_per_task: int

    def render(self) -> str:
        return render(self)

    def __str__(self) -> str:
        return render(self)


def _check_name(name: str, value) -> str:
    if not isinstance(value, str) or not _NAME_RE.match(value):
        raise BenchmarkIdError(name, value, "expected a non-empty name of [A-Za-z0-9_.-]")
    return value


def _check_int(name: str, value) -> str:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise BenchmarkIdError(name, value, "expected a positive integer")
    return str(value)


def _check_limit(name: str, value) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BenchmarkIdError(name, value, "expected a non-negative number")
    if not math.isfinite(value) or value < 0:
        raise BenchmarkIdError(name, value, "expected a finite non-negative number")
    text = f"{value:.2f}"
    if float(text) != float(value):
        raise BenchmarkIdError(name, value, "at most two decimal places are representable")
    return text


def _check_flag(name: str, value) -> str:
    if not isinstance(value, bool):
        raise BenchmarkIdError(name, value, "expected a boolean")
    return _FLAGS[name][value]


def render(params: BenchmarkId) -> str:
    """
    Render parameters into their identifier string.

    Args:
        params: Benchmark parameters

    Returns:
        The identifier

    Raises:
        BenchmarkIdError: If a field is outside the encodable domain or the
            result exceeds ``MAX_IDENTIFIER_LENGTH``
    """
    ident = (
        f"{_check_name('provider', params.provider)}"
        f"/{_check_name('bench_group', params.bench_group)}"
        f"/{_check_int('m', params.m)}:{_check_int('ef_construction', params.ef_construction)}"
        f"_{_check_limit('cpu_limit', params.cpu_limit)}:{_check_limit('mem_limit', params.mem_limit)}"
        f"-{_check_int('k', params.k)}:{_check_int('ef', params.ef)}"
        f":{_check_flag('fetch_payload', params.fetch_payload)}"
        f":{_check_flag('use_filters', params.use_filters)}"
        f"-{_check_int('num_tasks', params.num_tasks)}"
        f":{_check_int('queries_per_task', params.queries_per_task)}"
    )
    if len(ident) > MAX_IDENTIFIER_LENGTH:
        raise BenchmarkIdError(
            "length", ident, f"longer than {MAX_IDENTIFIER_LENGTH} characters"
        )
    return ident


def _split(field: str, text: str, sep: str, count: int):
    parts = text.split(sep)
    if len(parts) != count:
        raise BenchmarkIdError(
            field, text, f"expected {count} parts separated by {sep!r}, got {len(parts)}"
        )
    return parts


def _parse_name(field: str, text: str) -> str:
    if not _NAME_RE.match(text):
        raise BenchmarkIdError(field, text, "expected a non-empty name of [A-Za-z0-9_.-]")
    return text


def _parse_int(field: str, text: str) -> int:
    if not _INT_RE.match(text):
        raise BenchmarkIdError(field, text, "expected a positive integer without leading zeros")
    return int(text)


def _parse_limit(field: str, text: str) -> float:
    if not _LIMIT_RE.match(text):
        raise BenchmarkIdError(field, text, "expected a number with exactly two decimals")
    return float(text)


def _parse_flag(field: str, text: str) -> bool:
    for value, symbol in _FLAGS[field].items():
        if text == symbol:
            return value
    expected = " or ".join(repr(s) for s in _FLAGS[field].values())
    raise BenchmarkIdError(field, text, f"expected {expected}")


def parse(ident: str) -> BenchmarkId:
    """
    Parse an identifier string.

    Args:
        ident: Identifier as produced by ``render``

    Returns:
        The decoded parameters

    Raises:
        BenchmarkIdError: Naming the first field that failed to parse
    """
    if not isinstance(ident, str):
        raise BenchmarkIdError("structure", ident, "expected a string")
    if len(ident) > MAX_IDENTIFIER_LENGTH:
        raise BenchmarkIdError("length", ident, f"longer than {MAX_IDENTIFIER_LENGTH} characters")

    provider, bench_group, params = _split("structure", ident, "/", 3)
    if "_" not in params:
        raise BenchmarkIdError("structure", params, "missing '_' between ingestion and query parameters")
    ingestion, query_params = params.split("_", 1)

    m, ef_construction = _split("ingestion_params", ingestion, ":", 2)
    limits, query, parallelism = _split("query_params", query_params, "-", 3)
    cpu_limit, mem_limit = _split("limits", limits, ":", 2)
    k, ef, fetch_flag, filter_flag = _split("query", query, ":", 4)
    num_tasks, queries_per_task = _split("parallelism", parallelism, ":", 2)

    return BenchmarkId(
        provider=_parse_name("provider", provider),
        bench_group=_parse_name("bench_group", bench_group),
        m=_parse_int("m", m),
        ef_construction=_parse_int("ef_construction", ef_construction),
        cpu_limit=_parse_limit("cpu_limit", cpu_limit),
        mem_limit=_parse_limit("mem_limit", mem_limit),
        k=_parse_int("k", k),
        ef=_parse_int("ef", ef),
        fetch_payload=_parse_flag("fetch_payload", fetch_flag),
        use_filters=_parse_flag("use_filters", filter_flag),
        num_tasks=_parse_int("num_tasks", num_tasks),
        queries_per_task=_parse_int("queries_per_task", queries_per_task),
    )

