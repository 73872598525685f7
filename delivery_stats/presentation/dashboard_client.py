# dashboard_client.py - Client for UI surfaces reading the statistics API
import asyncio
import aiohttp
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class DashboardClient:
    """Client for fetching cached dashboard statistics from the statistics API."""

    def __init__(self, base_url: str, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds
        self.session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_seconds))
        return self.session

    async def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        try:
            session = await self._get_session()
            async with session.request(method, f"{self.base_url}{path}", params=params) as response:
                if response.status == 200:
                    return await response.json()
                error_text = await response.text()
                logger.error(f"{method} {path} failed: {response.status} - {error_text}")
                return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error calling dashboard API {method} {path}: {e}")
            return None

    async def get_order_statistics(self) -> Optional[Dict[str, Any]]:
        return await self._request("GET", "/stats/orders")

    async def get_user_statistics(self) -> Optional[Dict[str, Any]]:
        return await self._request("GET", "/stats/users")

    async def get_overview(self) -> Optional[Dict[str, Any]]:
        return await self._request("GET", "/stats")

    async def get_driver_roster(self, limit: Optional[int] = None) -> Optional[Dict[str, Any]]:
        params = {"limit": limit} if limit is not None else None
        return await self._request("GET", "/drivers", params=params)

    async def invalidate(self, key_class: Optional[str] = None) -> bool:
        """Ask the API to recompute one key class, or all of them when none is given."""
        path = f"/cache/{key_class}/invalidate" if key_class else "/cache/invalidate"
        return await self._request("POST", path) is not None

    async def close(self):
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
