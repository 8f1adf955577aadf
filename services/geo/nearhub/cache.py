import logging
import time
from typing import Awaitable, Callable, Optional

from nearhub.config import GEOCODE_CACHE_TTL_SEC, HUB_CACHE_TTL_SEC
from nearhub.models import Coordinate, CoordinateSource, Hub

log = logging.getLogger("nearhub.cache")


def normalize_key(key: str) -> str:
    """Cache keys are case- and whitespace-insensitive on every backend."""
    return key.strip().lower()


class MemoryGeocodeCache:
    """city|country -> coordinate, in-process. Last write wins."""

    def __init__(self, ttl: float = GEOCODE_CACHE_TTL_SEC, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._items: dict[str, tuple[Coordinate, float]] = {}

    async def get(self, key: str) -> Optional[Coordinate]:
        item = self._items.get(normalize_key(key))
        if item is None:
            return None
        coord, stored_at = item
        if self._clock() - stored_at >= self.ttl:
            return None
        return coord.with_source(CoordinateSource.cached)

    async def set(self, key: str, coord: Coordinate) -> None:
        self._items[normalize_key(key)] = (coord, self._clock())


GEO_KEY = "geo:city:{key}"  # -> "lat,lon,confidence"


class RedisGeocodeCache:
    """Same contract as MemoryGeocodeCache, shared by every worker through Redis."""

    def __init__(self, redis, ttl: float = GEOCODE_CACHE_TTL_SEC):
        self.redis = redis
        self.ttl = int(ttl)

    async def get(self, key: str) -> Optional[Coordinate]:
        cached = await self.redis.get(GEO_KEY.format(key=normalize_key(key)))
        if not cached:
            return None
        if isinstance(cached, bytes):
            cached = cached.decode()
        try:
            lat_s, lon_s, conf_s = cached.split(",", 2)
            return Coordinate.parse(lat_s, lon_s, CoordinateSource.cached, float(conf_s))
        except ValueError:
            log.warning("Bad geo cache value key=%r value=%r", key, cached)
            return None

    async def set(self, key: str, coord: Coordinate) -> None:
        value = f"{coord.latitude},{coord.longitude},{coord.confidence}"
        await self.redis.set(GEO_KEY.format(key=normalize_key(key)), value, ex=self.ttl)


class HubCache:
    """Whole active-hub list, reloaded after the TTL. No per-row invalidation."""

    def __init__(self, ttl: float = HUB_CACHE_TTL_SEC, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._hubs: Optional[list[Hub]] = None
        self._loaded_at = 0.0

    def is_fresh(self) -> bool:
        return self._hubs is not None and (self._clock() - self._loaded_at) < self.ttl

    async def get(self, loader: Callable[[], Awaitable[list[Hub]]]) -> list[Hub]:
        if self.is_fresh():
            return self._hubs
        hubs = [h for h in await loader() if h.is_active and h.coordinate is not None]
        self._hubs = hubs
        self._loaded_at = self._clock()
        log.info("Loaded %s hubs into cache", len(hubs))
        return hubs

    def invalidate(self) -> None:
        self._hubs = None
