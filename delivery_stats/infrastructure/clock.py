# delivery_stats/infrastructure/clock.py
from datetime import datetime

from ..domain.interfaces import IClock


class SystemClock(IClock):
    """Wall clock in local time, matching the store's localtime created_at defaults."""

    def now(self) -> datetime:
        return datetime.now()
