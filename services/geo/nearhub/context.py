from dataclasses import dataclass, field

from nearhub.cache import HubCache, MemoryGeocodeCache, RedisGeocodeCache
from nearhub.geo import RateLimiter


@dataclass
class GeoContext:
    """
    Process-wide mutable state: the Nominatim rate limiter and both caches.
    Built once by the application and handed to every Geocoder / ranker, so all
    of them pace against the same limiter.
    """
    rate_limiter: RateLimiter = field(default_factory=RateLimiter)
    geocode_cache: object = field(default_factory=MemoryGeocodeCache)
    hub_cache: HubCache = field(default_factory=HubCache)


def build_context(redis=None) -> GeoContext:
    if redis is not None:
        return GeoContext(geocode_cache=RedisGeocodeCache(redis))
    return GeoContext()
