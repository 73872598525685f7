# delivery_stats/application/services/warmup_service.py
import logging
from typing import Dict

from ...domain.exceptions import CacheComputeError
from ...domain.interfaces import IDashboardStatisticsService

logger = logging.getLogger(__name__)


class CacheWarmupService:
    """Pre-computes every cache key so the first dashboard request doesn't pay for the queries."""

    def __init__(self, statistics_service: IDashboardStatisticsService, enabled: bool = True):
        self._statistics_service = statistics_service
        self._enabled = enabled

    async def warm(self) -> Dict[str, bool]:
        """Warm each key class independently. Returns key class -> whether it was computed."""
        if not self._enabled:
            logger.info("Cache warm-up disabled, skipping")
            return {}

        loaders = {
            "order_stats": self._statistics_service.get_order_statistics,
            "user_stats": self._statistics_service.get_user_statistics,
            "driver_roster": self._statistics_service.get_driver_roster,
        }
        results: Dict[str, bool] = {}
        for name, load in loaders.items():
            try:
                await load()
                results[name] = True
            except CacheComputeError as e:
                logger.warning(f"Cache warm-up for {name} failed: {e}")
                results[name] = False
        logger.info(f"Cache warm-up finished: {sum(results.values())}/{len(results)} key(s) ready")
        return results
