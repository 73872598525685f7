# delivery_stats/domain/models.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, Generic, Iterator, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")


class KeyClass(str, Enum):
    """Cache key classes, each with its own TTL."""
    ORDER_STATS = "order_stats"
    USER_STATS = "user_stats"
    DRIVER_ROSTER = "driver_roster"


class MetricGroup(str, Enum):
    """Query group a failure is attributed to."""
    ORDERS = "orders"
    USERS = "users"
    ROSTER = "roster"


class EntryState(str, Enum):
    EMPTY = "empty"
    VALID = "valid"
    STALE = "stale"


# Order status values as stored in orders.status
STATUS_PENDING = "pending"
STATUS_ASSIGNED = "assigned"
STATUS_PICKED_UP = "picked_up"
STATUS_IN_TRANSIT = "in_transit"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
IN_PROGRESS_STATUSES = (STATUS_ASSIGNED, STATUS_PICKED_UP, STATUS_IN_TRANSIT)
KNOWN_ORDER_STATUSES = (STATUS_PENDING,) + IN_PROGRESS_STATUSES + (STATUS_DELIVERED, STATUS_CANCELLED)

ROLE_DRIVER = "driver"
ROLE_CUSTOMER = "customer"
USER_STATUS_ACTIVE = "active"

ORDER_METRICS: Tuple[str, ...] = (
    "total_orders",
    "pending_orders",
    "in_progress_orders",
    "delivered_orders",
    "cancelled_orders",
    "other_orders",
    "today_orders",
    "week_orders",
    "month_orders",
    "delivered_today_orders",
    "cancelled_today_orders",
)

USER_METRICS: Tuple[str, ...] = (
    "total_customers",
    "active_customers",
    "new_customers_today",
    "total_drivers",
    "active_drivers",
    "new_drivers_today",
)

METRICS_BY_GROUP: Dict[MetricGroup, Tuple[str, ...]] = {
    MetricGroup.ORDERS: ORDER_METRICS,
    MetricGroup.USERS: USER_METRICS,
}


@dataclass(frozen=True)
class StatisticsSnapshot:
    """Immutable set of dashboard counters computed in one pass."""
    group: MetricGroup
    counts: Mapping[str, int]
    computed_at: datetime

    def __post_init__(self):
        expected = METRICS_BY_GROUP.get(self.group)
        if expected is None:
            raise ValueError(f"No statistics are defined for group '{self.group.value}'.")
        if set(self.counts) != set(expected):
            missing = sorted(set(expected) - set(self.counts))
            unexpected = sorted(set(self.counts) - set(expected))
            raise ValueError(f"Metric names mismatch for {self.group.value}: missing={missing}, unexpected={unexpected}")
        for name, value in self.counts.items():
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"Metric '{name}' must be a non-negative int, got {value!r}")
        # Freeze a private copy so callers can't mutate the snapshot through their dict
        object.__setattr__(self, "counts", MappingProxyType({name: self.counts[name] for name in expected}))

    def __getitem__(self, name: str) -> int:
        return self.counts[name]

    def get(self, name: str, default: Optional[int] = None) -> Optional[int]:
        return self.counts.get(name, default)

    def as_dict(self) -> Dict[str, int]:
        return dict(self.counts)


@dataclass(frozen=True)
class DriverRecord:
    """A driver row as shown in dashboard dropdowns."""
    id: int
    username: str
    full_name: Optional[str]
    phone: Optional[str]
    serial_number: Optional[str]
    points: int = 0
    role: str = ROLE_DRIVER

    def __post_init__(self):
        if self.role != ROLE_DRIVER:
            raise ValueError(f"DriverRecord {self.id} has role '{self.role}', expected '{ROLE_DRIVER}'.")


@dataclass(frozen=True)
class DriverRoster:
    """Drivers ordered by username ascending, capped at `limit`."""
    drivers: Tuple[DriverRecord, ...]
    limit: int
    fetched_at: datetime
    # True only when more drivers exist beyond the ones held here
    truncated: bool = False

    def __post_init__(self):
        object.__setattr__(self, "drivers", tuple(self.drivers))
        if len(self.drivers) > self.limit:
            raise ValueError(f"Roster holds {len(self.drivers)} drivers, above its limit of {self.limit}.")
        if self.truncated and len(self.drivers) != self.limit:
            raise ValueError(f"A truncated roster must hold exactly {self.limit} drivers, got {len(self.drivers)}.")

    def __len__(self) -> int:
        return len(self.drivers)

    def __iter__(self) -> Iterator[DriverRecord]:
        return iter(self.drivers)

    def head(self, n: int) -> "DriverRoster":
        if n >= self.limit:
            return self
        return DriverRoster(
            drivers=self.drivers[:n],
            limit=n,
            fetched_at=self.fetched_at,
            truncated=self.truncated or n < len(self.drivers),
        )


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the instant it stops being served."""
    value: T
    computed_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at
