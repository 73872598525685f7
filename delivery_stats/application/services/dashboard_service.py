# delivery_stats/application/services/dashboard_service.py
import logging
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Union

from ...domain.exceptions import ConfigurationError
from ...domain.interfaces import IClock, IDashboardStatisticsService, IMetricsAggregator
from ...domain.models import CacheEntry, DriverRoster, EntryState, KeyClass, StatisticsSnapshot
from .bounded_cache import BoundedCache

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(seconds=60)
DEFAULT_ROSTER_LIMIT = 1000


class DashboardStatisticsService(IDashboardStatisticsService):
    """Serves dashboard statistics and the driver roster through one shared BoundedCache."""

    def __init__(
            self,
            aggregator: IMetricsAggregator,
            clock: IClock,
            ttls: Optional[Mapping[KeyClass, timedelta]] = None,
            roster_limit: int = DEFAULT_ROSTER_LIMIT
    ):
        if isinstance(roster_limit, bool) or not isinstance(roster_limit, int) or roster_limit <= 0:
            raise ConfigurationError(f"Driver roster limit must be a positive integer, got {roster_limit!r}")
        self._aggregator = aggregator
        self._roster_limit = roster_limit
        resolved_ttls = {key: DEFAULT_TTL for key in KeyClass}
        resolved_ttls.update(ttls or {})
        self._cache = BoundedCache(
            loaders={
                KeyClass.ORDER_STATS: aggregator.compute_order_statistics,
                KeyClass.USER_STATS: aggregator.compute_user_statistics,
                KeyClass.DRIVER_ROSTER: self._load_driver_roster,
            },
            ttls=resolved_ttls,
            clock=clock,
        )

    @property
    def roster_limit(self) -> int:
        return self._roster_limit

    async def _load_driver_roster(self) -> DriverRoster:
        # Always fetched at the configured maximum; smaller requests are served from its prefix
        logger.debug(f"Loading driver roster (limit {self._roster_limit})")
        return await self._aggregator.fetch_driver_roster(self._roster_limit)

    async def get_order_statistics(self) -> StatisticsSnapshot:
        return await self._cache.get(KeyClass.ORDER_STATS)

    async def get_user_statistics(self) -> StatisticsSnapshot:
        return await self._cache.get(KeyClass.USER_STATS)

    async def get_driver_roster(self, limit: Optional[int] = None) -> DriverRoster:
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
            raise ValueError(f"Roster limit must be a positive integer, got {limit!r}")
        roster: DriverRoster = await self._cache.get(KeyClass.DRIVER_ROSTER)
        if limit is None or limit >= self._roster_limit:
            return roster
        return roster.head(limit)

    async def get_overview(self) -> Dict[str, Any]:
        orders = await self.get_order_statistics()
        users = await self.get_user_statistics()
        overview: Dict[str, Any] = {}
        overview.update(orders.as_dict())
        overview.update(users.as_dict())
        overview["computed_at"] = min(orders.computed_at, users.computed_at)
        return overview

    @staticmethod
    def _resolve_key(key_class: Union[KeyClass, str]) -> KeyClass:
        try:
            return KeyClass(key_class)
        except ValueError:
            valid = ", ".join(key.value for key in KeyClass)
            raise ValueError(f"Unknown key class '{key_class}'. Expected one of: {valid}") from None

    def invalidate(self, key_class: Union[KeyClass, str]) -> None:
        self._cache.invalidate(self._resolve_key(key_class))

    def invalidate_all(self) -> None:
        self._cache.invalidate_all()

    def cache_status(self) -> Dict[str, EntryState]:
        return {key.value: self._cache.state(key) for key in self._cache.keys}

    def cache_entry(self, key_class: Union[KeyClass, str]) -> Optional[CacheEntry]:
        """The raw cache entry for a key class, for expiry reporting."""
        return self._cache.peek(self._resolve_key(key_class))
