# delivery_stats/domain/interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .models import CacheEntry, DriverRoster, EntryState, KeyClass, StatisticsSnapshot

# Positional (?) or named (:name) statement parameters
QueryParams = Union[Sequence[Any], Mapping[str, Any]]


class IQueryExecutor(ABC):
    """Runs read queries against the transactional store."""

    @abstractmethod
    async def execute(self, sql: str, params: QueryParams = ()) -> List[Mapping[str, Any]]:
        """
        Execute a statement and return its rows as mappings.
        Raises QueryExecutionError on failure or timeout.
        """
        pass

    @abstractmethod
    async def explain(self, sql: str, params: QueryParams = ()) -> List[str]:
        """Return the store's query plan for a statement, one line per step."""
        pass


class IClock(ABC):
    """Source of the current store-local time."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class IMetricsAggregator(ABC):
    """Computes dashboard statistics with one query per metric group."""

    @abstractmethod
    async def compute_order_statistics(self) -> StatisticsSnapshot:
        """Order counters from a single pass over the orders relation."""
        pass

    @abstractmethod
    async def compute_user_statistics(self) -> StatisticsSnapshot:
        """Per-role user counters from a single grouped query."""
        pass

    @abstractmethod
    async def fetch_driver_roster(self, limit: int) -> DriverRoster:
        """All drivers ordered by username, truncated at `limit`."""
        pass


class IDashboardStatisticsService(ABC):
    """Service interface consumed by the presentation layer."""

    @abstractmethod
    async def get_order_statistics(self) -> StatisticsSnapshot:
        pass

    @abstractmethod
    async def get_user_statistics(self) -> StatisticsSnapshot:
        pass

    @abstractmethod
    async def get_driver_roster(self, limit: Optional[int] = None) -> DriverRoster:
        pass

    @abstractmethod
    async def get_overview(self) -> Dict[str, Any]:
        """Order and user counters combined, as the dashboard header shows them."""
        pass

    @abstractmethod
    def invalidate(self, key_class: Union[KeyClass, str]) -> None:
        """Force the next read of `key_class` to recompute."""
        pass

    @abstractmethod
    def invalidate_all(self) -> None:
        pass

    @abstractmethod
    def cache_status(self) -> Dict[str, EntryState]:
        pass

    @abstractmethod
    def cache_entry(self, key_class: Union[KeyClass, str]) -> Optional[CacheEntry]:
        """Current cache entry for `key_class`, valid or not."""
        pass
