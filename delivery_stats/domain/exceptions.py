# delivery_stats/domain/exceptions.py
from typing import Optional

from .models import KeyClass, MetricGroup


class ConfigurationError(ValueError):
    """Raised when a TTL, limit or other setting is invalid at construction time."""


class QueryExecutionError(Exception):
    """Raised by a query executor when a statement fails or exceeds its timeout."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class AggregationError(Exception):
    """A statistics query failed for one metric group. Never carries partial results."""

    def __init__(self, group: MetricGroup, message: str):
        super().__init__(f"[{group.value}] {message}")
        self.group = group


class CacheComputeError(Exception):
    """
    A single-flight recomputation failed.
    Raised to the caller that triggered it and to every caller waiting on it.
    """

    def __init__(self, key: KeyClass, cause: BaseException):
        super().__init__(f"Recomputing '{key.value}' failed: {cause}")
        self.key = key
        self.cause = cause

    @property
    def group(self) -> Optional[MetricGroup]:
        return self.cause.group if isinstance(self.cause, AggregationError) else None
