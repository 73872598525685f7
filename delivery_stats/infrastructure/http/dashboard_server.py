# delivery_stats/infrastructure/http/dashboard_server.py
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel
from datetime import datetime
from typing import Dict, List, Optional
import logging

from ...domain.exceptions import CacheComputeError
from ...domain.interfaces import IDashboardStatisticsService
from ...domain.models import DriverRoster, KeyClass, StatisticsSnapshot

logger = logging.getLogger(__name__)


class StatisticsResponse(BaseModel):
    """Response model for one statistics snapshot."""
    group: str
    computed_at: datetime
    counts: Dict[str, int]

    @classmethod
    def from_snapshot(cls, snapshot: StatisticsSnapshot) -> "StatisticsResponse":
        return cls(group=snapshot.group.value, computed_at=snapshot.computed_at, counts=snapshot.as_dict())


class DriverResponse(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    serial_number: Optional[str] = None
    points: int = 0


class DriverRosterResponse(BaseModel):
    drivers: List[DriverResponse]
    limit: int
    truncated: bool
    fetched_at: datetime

    @classmethod
    def from_roster(cls, roster: DriverRoster) -> "DriverRosterResponse":
        return cls(
            drivers=[
                DriverResponse(
                    id=d.id, username=d.username, full_name=d.full_name,
                    phone=d.phone, serial_number=d.serial_number, points=d.points
                )
                for d in roster
            ],
            limit=roster.limit,
            truncated=roster.truncated,
            fetched_at=roster.fetched_at,
        )


class CacheKeyStatus(BaseModel):
    state: str
    computed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class DashboardHttpServer:
    """JSON API serving cached dashboard statistics to the presentation layer."""

    def __init__(self, statistics_service: IDashboardStatisticsService):
        self.statistics_service = statistics_service
        self.app = FastAPI(title="Delivery Dashboard Statistics API", version="1.0.0")
        self._setup_routes()

    def _unavailable(self, e: CacheComputeError) -> HTTPException:
        logger.error(f"Statistics unavailable: {e}")
        return HTTPException(status_code=503, detail=f"Statistics unavailable: {e}")

    def _setup_routes(self) -> None:
        """Setup HTTP routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": datetime.now()}

        @self.app.get("/stats/orders", response_model=StatisticsResponse)
        async def get_order_statistics():
            try:
                snapshot = await self.statistics_service.get_order_statistics()
            except CacheComputeError as e:
                raise self._unavailable(e)
            return StatisticsResponse.from_snapshot(snapshot)

        @self.app.get("/stats/users", response_model=StatisticsResponse)
        async def get_user_statistics():
            try:
                snapshot = await self.statistics_service.get_user_statistics()
            except CacheComputeError as e:
                raise self._unavailable(e)
            return StatisticsResponse.from_snapshot(snapshot)

        @self.app.get("/stats")
        async def get_overview():
            """Order and user counters in one payload."""
            try:
                return await self.statistics_service.get_overview()
            except CacheComputeError as e:
                raise self._unavailable(e)

        @self.app.get("/drivers", response_model=DriverRosterResponse)
        async def get_driver_roster(limit: Optional[int] = Query(default=None, gt=0)):
            try:
                roster = await self.statistics_service.get_driver_roster(limit)
            except CacheComputeError as e:
                raise self._unavailable(e)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return DriverRosterResponse.from_roster(roster)

        @self.app.get("/cache", response_model=Dict[str, CacheKeyStatus])
        async def get_cache_status():
            status = {}
            for key_class, state in self.statistics_service.cache_status().items():
                entry = self.statistics_service.cache_entry(key_class)
                status[key_class] = CacheKeyStatus(
                    state=state.value,
                    computed_at=entry.computed_at if entry else None,
                    expires_at=entry.expires_at if entry else None,
                )
            return status

        @self.app.post("/cache/invalidate")
        async def invalidate_all():
            self.statistics_service.invalidate_all()
            return {"status": "success", "invalidated": [key.value for key in KeyClass]}

        @self.app.post("/cache/{key_class}/invalidate")
        async def invalidate(key_class: str):
            """Used after writes that must show up before the TTL runs out."""
            try:
                self.statistics_service.invalidate(key_class)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "success", "invalidated": [key_class]}
