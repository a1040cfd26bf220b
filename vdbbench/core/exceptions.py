"""
Exception hierarchy for the benchmark driver.

Generation and identifier errors are fatal and reported to the operator.
Backend errors are recorded per query and never abort a run.
"""

from typing import Any


class BenchmarkError(Exception):
    """Base class for all driver errors."""


class GenerationError(BenchmarkError):
    """Invalid generation settings or inputs; nothing is persisted."""


class FilterSpecError(GenerationError):
    """A filter specification violates its structural preconditions."""


class BackendError(BenchmarkError):
    """A single backend call failed (transport, HTTP status or malformed response)."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class BenchmarkIdError(BenchmarkError, ValueError):
    """A benchmark identifier could not be rendered or parsed."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(f"invalid {field} {value!r}: {reason}")
        self.field = field
        self.value = value
        self.reason = reason


class DataIntegrityError(BenchmarkError):
    """A logged result cannot be reconciled with the reference vector set."""
