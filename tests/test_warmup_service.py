from unittest.mock import AsyncMock, Mock

import pytest

from delivery_stats.application.services.warmup_service import CacheWarmupService
from delivery_stats.domain.exceptions import AggregationError, CacheComputeError
from delivery_stats.domain.models import KeyClass, MetricGroup


@pytest.fixture
def statistics_service():
    service = Mock()
    service.get_order_statistics = AsyncMock()
    service.get_user_statistics = AsyncMock()
    service.get_driver_roster = AsyncMock()
    return service


@pytest.mark.asyncio
async def test_warm_computes_every_key(statistics_service):
    results = await CacheWarmupService(statistics_service).warm()

    assert results == {"order_stats": True, "user_stats": True, "driver_roster": True}
    statistics_service.get_order_statistics.assert_awaited_once()
    statistics_service.get_user_statistics.assert_awaited_once()
    statistics_service.get_driver_roster.assert_awaited_once()


@pytest.mark.asyncio
async def test_one_failing_key_does_not_stop_the_others(statistics_service):
    statistics_service.get_user_statistics.side_effect = CacheComputeError(
        KeyClass.USER_STATS, AggregationError(MetricGroup.USERS, "locked")
    )

    results = await CacheWarmupService(statistics_service).warm()

    assert results == {"order_stats": True, "user_stats": False, "driver_roster": True}
    statistics_service.get_driver_roster.assert_awaited_once()


@pytest.mark.asyncio
async def test_disabled_warmup_skips_everything(statistics_service):
    results = await CacheWarmupService(statistics_service, enabled=False).warm()

    assert results == {}
    statistics_service.get_order_statistics.assert_not_awaited()
