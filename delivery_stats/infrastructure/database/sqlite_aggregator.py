# delivery_stats/infrastructure/database/sqlite_aggregator.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Tuple

from ...domain.exceptions import AggregationError, QueryExecutionError
from ...domain.interfaces import IClock, IMetricsAggregator, IQueryExecutor
from ...domain.models import (
    DriverRecord, DriverRoster, MetricGroup, StatisticsSnapshot,
    ORDER_METRICS, IN_PROGRESS_STATUSES, KNOWN_ORDER_STATUSES,
    STATUS_PENDING, STATUS_DELIVERED, STATUS_CANCELLED,
    ROLE_CUSTOMER, ROLE_DRIVER, USER_STATUS_ACTIVE,
)
from .schema import format_timestamp

logger = logging.getLogger(__name__)


def _placeholders(prefix: str, values: Tuple[str, ...]) -> Tuple[str, Dict[str, str]]:
    """Named placeholders for an IN (...) list, plus their bound values."""
    params = {f"{prefix}_{i}": value for i, value in enumerate(values)}
    return ", ".join(f":{name}" for name in params), params


_IN_PROGRESS_SQL, _IN_PROGRESS_PARAMS = _placeholders("in_progress", IN_PROGRESS_STATUSES)
_KNOWN_SQL, _KNOWN_PARAMS = _placeholders("known", KNOWN_ORDER_STATUSES)

# Every bucket is a half-open range on the raw column so (status, *_at) indexes stay usable.
ORDER_STATISTICS_SQL = f"""
    SELECT
        COUNT(*) AS total_orders,
        COALESCE(SUM(CASE WHEN status = :pending THEN 1 ELSE 0 END), 0) AS pending_orders,
        COALESCE(SUM(CASE WHEN status IN ({_IN_PROGRESS_SQL}) THEN 1 ELSE 0 END), 0) AS in_progress_orders,
        COALESCE(SUM(CASE WHEN status = :delivered THEN 1 ELSE 0 END), 0) AS delivered_orders,
        COALESCE(SUM(CASE WHEN status = :cancelled THEN 1 ELSE 0 END), 0) AS cancelled_orders,
        COALESCE(SUM(CASE WHEN status NOT IN ({_KNOWN_SQL}) THEN 1 ELSE 0 END), 0) AS other_orders,
        COALESCE(SUM(CASE WHEN created_at >= :day_start AND created_at < :day_end THEN 1 ELSE 0 END), 0) AS today_orders,
        COALESCE(SUM(CASE WHEN created_at >= :week_start AND created_at < :week_end THEN 1 ELSE 0 END), 0) AS week_orders,
        COALESCE(SUM(CASE WHEN created_at >= :month_start AND created_at < :month_end THEN 1 ELSE 0 END), 0) AS month_orders,
        COALESCE(SUM(CASE WHEN status = :delivered
                           AND delivered_at >= :day_start AND delivered_at < :day_end THEN 1 ELSE 0 END), 0)
            AS delivered_today_orders,
        COALESCE(SUM(CASE WHEN status = :cancelled
                           AND cancelled_at >= :day_start AND cancelled_at < :day_end THEN 1 ELSE 0 END), 0)
            AS cancelled_today_orders
    FROM orders
"""

# Only the grouping key and aggregates are selected
USER_STATISTICS_SQL = """
    SELECT
        role,
        COUNT(*) AS total,
        COALESCE(SUM(CASE WHEN status = :active THEN 1 ELSE 0 END), 0) AS active,
        COALESCE(SUM(CASE WHEN created_at >= :day_start AND created_at < :day_end THEN 1 ELSE 0 END), 0) AS new_today
    FROM users
    WHERE role IN (:customer, :driver)
    GROUP BY role
"""

# One row past the limit tells whether the roster was cut off
DRIVER_ROSTER_SQL = """
    SELECT id, username, full_name, phone, serial_number, points, role
    FROM users
    WHERE role = :driver
    ORDER BY username ASC
    LIMIT :limit + 1
"""

# role -> (total, active, new today) metric names
_USER_METRIC_NAMES = {
    ROLE_CUSTOMER: ("total_customers", "active_customers", "new_customers_today"),
    ROLE_DRIVER: ("total_drivers", "active_drivers", "new_drivers_today"),
}


@dataclass(frozen=True)
class ReportingPeriods:
    """Half-open [start, end) bounds of today, this week (Monday start) and this month."""
    day_start: datetime
    day_end: datetime
    week_start: datetime
    week_end: datetime
    month_start: datetime
    month_end: datetime

    @classmethod
    def containing(cls, now: datetime) -> "ReportingPeriods":
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = day_start - timedelta(days=day_start.weekday())
        month_start = day_start.replace(day=1)
        if month_start.month == 12:
            month_end = month_start.replace(year=month_start.year + 1, month=1)
        else:
            month_end = month_start.replace(month=month_start.month + 1)
        return cls(
            day_start=day_start,
            day_end=day_start + timedelta(days=1),
            week_start=week_start,
            week_end=week_start + timedelta(days=7),
            month_start=month_start,
            month_end=month_end,
        )

    def as_params(self) -> Dict[str, str]:
        return {
            "day_start": format_timestamp(self.day_start),
            "day_end": format_timestamp(self.day_end),
            "week_start": format_timestamp(self.week_start),
            "week_end": format_timestamp(self.week_end),
            "month_start": format_timestamp(self.month_start),
            "month_end": format_timestamp(self.month_end),
        }


class SQLiteMetricsAggregator(IMetricsAggregator):
    """Computes dashboard statistics with one conditional-aggregation query per metric group."""

    def __init__(self, executor: IQueryExecutor, clock: IClock):
        self._executor = executor
        self._clock = clock

    def _order_params(self, now: datetime) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "pending": STATUS_PENDING,
            "delivered": STATUS_DELIVERED,
            "cancelled": STATUS_CANCELLED,
        }
        params.update(_IN_PROGRESS_PARAMS)
        params.update(_KNOWN_PARAMS)
        params.update(ReportingPeriods.containing(now).as_params())
        return params

    def _user_params(self, now: datetime) -> Dict[str, Any]:
        periods = ReportingPeriods.containing(now).as_params()
        return {
            "active": USER_STATUS_ACTIVE,
            "customer": ROLE_CUSTOMER,
            "driver": ROLE_DRIVER,
            "day_start": periods["day_start"],
            "day_end": periods["day_end"],
        }

    async def _query(self, group: MetricGroup, sql: str, params: Mapping[str, Any]) -> List[Mapping[str, Any]]:
        try:
            return await self._executor.execute(sql, params)
        except QueryExecutionError as e:
            reason = "query timed out" if e.timed_out else str(e)
            logger.error(f"{group.value} statistics query failed: {reason}")
            raise AggregationError(group, reason) from e

    async def compute_order_statistics(self) -> StatisticsSnapshot:
        now = self._clock.now()
        rows = await self._query(MetricGroup.ORDERS, ORDER_STATISTICS_SQL, self._order_params(now))
        try:
            row = rows[0]
            counts = {name: int(row[name] or 0) for name in ORDER_METRICS}
            return StatisticsSnapshot(group=MetricGroup.ORDERS, counts=counts, computed_at=now)
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise AggregationError(MetricGroup.ORDERS, f"Malformed statistics row: {e}") from e

    async def compute_user_statistics(self) -> StatisticsSnapshot:
        now = self._clock.now()
        rows = await self._query(MetricGroup.USERS, USER_STATISTICS_SQL, self._user_params(now))
        counts = {name: 0 for names in _USER_METRIC_NAMES.values() for name in names}
        try:
            for row in rows:
                total_name, active_name, new_name = _USER_METRIC_NAMES[row["role"]]
                counts[total_name] = int(row["total"] or 0)
                counts[active_name] = int(row["active"] or 0)
                counts[new_name] = int(row["new_today"] or 0)
            return StatisticsSnapshot(group=MetricGroup.USERS, counts=counts, computed_at=now)
        except (KeyError, TypeError, ValueError) as e:
            raise AggregationError(MetricGroup.USERS, f"Malformed statistics row: {e}") from e

    async def fetch_driver_roster(self, limit: int) -> DriverRoster:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValueError(f"Driver roster limit must be a positive integer, got {limit!r}")
        now = self._clock.now()
        rows = await self._query(MetricGroup.ROSTER, DRIVER_ROSTER_SQL, {"driver": ROLE_DRIVER, "limit": limit})
        try:
            drivers = tuple(
                DriverRecord(
                    id=row["id"],
                    username=row["username"],
                    full_name=row["full_name"],
                    phone=row["phone"],
                    serial_number=row["serial_number"],
                    points=int(row["points"] or 0),
                    role=row["role"],
                )
                for row in rows[:limit]
            )
            return DriverRoster(drivers=drivers, limit=limit, fetched_at=now, truncated=len(rows) > limit)
        except (KeyError, TypeError, ValueError) as e:
            raise AggregationError(MetricGroup.ROSTER, f"Malformed driver row: {e}") from e

    async def explain_queries(self) -> Dict[str, List[str]]:
        """Query plan of every statistics query, for checking index use."""
        now = self._clock.now()
        return {
            "order_statistics": await self._executor.explain(ORDER_STATISTICS_SQL, self._order_params(now)),
            "user_statistics": await self._executor.explain(USER_STATISTICS_SQL, self._user_params(now)),
            "driver_roster": await self._executor.explain(DRIVER_ROSTER_SQL, {"driver": ROLE_DRIVER, "limit": 1}),
        }
