# delivery_stats/application/services/bounded_cache.py
import asyncio
import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Set, Tuple

from ...domain.exceptions import CacheComputeError, ConfigurationError
from ...domain.interfaces import IClock
from ...domain.models import CacheEntry, EntryState, KeyClass

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


class BoundedCache:
    """
    TTL cache over a fixed set of key classes with single-flight recomputation.

    While a key is being recomputed, every other `get` for that key awaits the
    same future instead of starting its own query. A failed recomputation is
    raised as CacheComputeError to all of those callers and the expired value
    is never served in its place.
    """

    def __init__(self, loaders: Mapping[KeyClass, Loader], ttls: Mapping[KeyClass, timedelta], clock: IClock):
        for key in loaders:
            ttl = ttls.get(key)
            if ttl is None:
                raise ConfigurationError(f"No TTL configured for cache key '{key.value}'.")
            if ttl <= timedelta(0):
                raise ConfigurationError(f"TTL for cache key '{key.value}' must be positive, got {ttl}.")
        self._loaders: Dict[KeyClass, Loader] = dict(loaders)
        self._ttls: Dict[KeyClass, timedelta] = {key: ttls[key] for key in loaders}
        self._clock = clock
        self._entries: Dict[KeyClass, CacheEntry] = {}
        self._in_flight: Dict[KeyClass, Tuple[int, asyncio.Future]] = {}
        self._invalidated: Set[KeyClass] = set()
        # Bumped by invalidate() so a recomputation started earlier doesn't get installed
        self._generations: Dict[KeyClass, int] = {key: 0 for key in loaders}

    def _loader_for(self, key: KeyClass) -> Loader:
        try:
            return self._loaders[key]
        except KeyError:
            raise KeyError(f"Unknown cache key '{key}'.") from None

    def _valid_entry(self, key: KeyClass) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None or key in self._invalidated or not entry.is_valid(self._clock.now()):
            return None
        return entry

    async def get(self, key: KeyClass) -> Any:
        self._loader_for(key)
        entry = self._valid_entry(key)
        if entry is not None:
            logger.debug(f"Cache hit for {key.value} (expires {entry.expires_at:%H:%M:%S})")
            return entry.value

        generation = self._generations[key]
        in_flight = self._in_flight.get(key)
        if in_flight is not None and in_flight[0] == generation:
            logger.debug(f"Joining in-flight recomputation of {key.value}")
            future = in_flight[1]
        else:
            # A recomputation started before invalidate() must not answer this caller,
            # and it still has to finish before the next one runs.
            previous = in_flight[1] if in_flight is not None else None
            future = asyncio.ensure_future(self._recompute(key, generation, previous))
            self._in_flight[key] = (generation, future)
        # Shielded so a cancelled caller doesn't cancel the computation other callers wait on
        return await asyncio.shield(future)

    async def _recompute(self, key: KeyClass, generation: int, previous: Optional[asyncio.Future]) -> Any:
        if previous is not None:
            await asyncio.wait([previous])
        started = time.perf_counter()
        try:
            value = await self._loaders[key]()
        except Exception as e:
            logger.error(f"Recomputing {key.value} failed: {e}", exc_info=True)
            raise CacheComputeError(key, e) from e
        finally:
            current = self._in_flight.get(key)
            if current is not None and current[1] is asyncio.current_task():
                del self._in_flight[key]

        now = self._clock.now()
        if self._generations[key] == generation:
            # Value and expiry are installed together as one new entry
            self._entries[key] = CacheEntry(value=value, computed_at=now, expires_at=now + self._ttls[key])
            self._invalidated.discard(key)
        else:
            logger.info(f"{key.value} was invalidated during recomputation; result not cached")
        logger.info(f"Recomputed {key.value} in {(time.perf_counter() - started) * 1000:.1f} ms")
        return value

    def invalidate(self, key: KeyClass) -> None:
        """Make the next `get` for `key` recompute regardless of expiry."""
        self._loader_for(key)
        self._generations[key] += 1
        if key in self._entries:
            self._invalidated.add(key)
        logger.info(f"Cache key {key.value} invalidated")

    def invalidate_all(self) -> None:
        for key in self._loaders:
            self.invalidate(key)

    def state(self, key: KeyClass) -> EntryState:
        self._loader_for(key)
        if key not in self._entries:
            return EntryState.EMPTY
        return EntryState.VALID if self._valid_entry(key) is not None else EntryState.STALE

    def peek(self, key: KeyClass) -> Optional[CacheEntry]:
        """Current entry for `key`, valid or not, without triggering a recomputation."""
        return self._entries.get(key)

    @property
    def keys(self):
        return tuple(self._loaders)
