"""
Location resolution: an ordered list of strategies, tried until one yields a
coordinate.

    CacheLookup -> PersistedLookup -> LiveGeocode -> NameMatchProxy -> CountryCentroidFallback

A strategy returns a Coordinate, returns None (nothing found) or raises a
GeoError; both failures move on to the next strategy. Only exhaustion of the
whole chain is an error for the caller (LocationUnresolvable).
"""
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence

from nearhub.config import COUNTRY_CENTROIDS
from nearhub.errors import GeoError, LocationUnresolvable
from nearhub.geo import Geocoder
from nearhub.models import Coordinate, CoordinateSource, EntityType, Hub, Location

log = logging.getLogger("nearhub.strategies")

HubsProvider = Callable[[], Awaitable[list[Hub]]]


class CacheLookup:
    name = "cache"

    def __init__(self, cache):
        self.cache = cache

    async def resolve(self, location: Location) -> Optional[Coordinate]:
        try:
            return await self.cache.get(location.key)
        except Exception as e:
            log.warning("Geocode cache read failed for %s: %s", location.key, e)
            return None


class PersistedLookup:
    """Coordinate of any earlier-geocoded entity at the same city/country."""
    name = "persisted"

    def __init__(self, store, entity_types: Sequence[EntityType]):
        self.store = store
        self.entity_types = list(entity_types)

    async def resolve(self, location: Location) -> Optional[Coordinate]:
        for entity_type in self.entity_types:
            try:
                found = await self.store.find_coordinate(entity_type, location.city, location.country)
            except Exception as e:
                log.warning("Error checking existing coordinates in %s: %s", entity_type.value, e)
                continue
            if found:
                coord = Coordinate.parse(found[0], found[1], CoordinateSource.persisted)
                if coord is not None:
                    return coord
        return None


class LiveGeocode:
    """
    Nominatim lookup. With `persist_to` set, the new coordinate is written to
    every record of that table at the same city/country.
    """
    name = "geocode"

    def __init__(self, geocoder: Geocoder, store=None, persist_to: Optional[EntityType] = None):
        self.geocoder = geocoder
        self.store = store
        self.persist_to = persist_to

    async def resolve(self, location: Location) -> Optional[Coordinate]:
        coord = await self.geocoder.lookup(location.city, location.country)
        if self.store is not None and self.persist_to is not None:
            try:
                n = await self.store.update_coordinates_for_location(
                    self.persist_to, location.city, location.country, coord.latitude, coord.longitude
                )
                log.info("Stored new coordinates for %s on %s %s", location.key, n, self.persist_to.value)
            except Exception as e:
                # the coordinate is still usable for this query
                log.warning("Failed to store coordinates for %s: %s", location.key, e)
        return coord


class NameMatchProxy:
    """
    Coordinate of a hub whose name or city textually matches the entity city.
    Naive substring match: a same-named hub in another country wins too.
    """
    name = "hub_name_match"

    def __init__(self, hubs_provider: HubsProvider):
        self.hubs_provider = hubs_provider

    async def resolve(self, location: Location) -> Optional[Coordinate]:
        city = location.city.strip().lower()
        if not city:
            return None
        try:
            hubs = await self.hubs_provider()
        except Exception as e:
            log.warning("Hub list unavailable for name match: %s", e)
            return None
        for hub in hubs:
            hub_city = (hub.city or "").strip().lower()
            hub_name = (hub.name or "").strip().lower()
            if (hub_city and (city in hub_city or hub_city in city)) or (hub_name and city in hub_name):
                coord = hub.coordinate
                if coord is not None:
                    log.info("Using hub %r as location proxy for %s", hub.name, location.key)
                    return coord.with_source(CoordinateSource.fallback)
        return None


class CountryCentroidFallback:
    name = "country_centroid"

    def __init__(self, centroids: Optional[dict[str, tuple[float, float]]] = None):
        self.centroids = centroids if centroids is not None else COUNTRY_CENTROIDS

    async def resolve(self, location: Location) -> Optional[Coordinate]:
        pos = self.centroids.get(location.country.strip().lower())
        if pos is None:
            return None
        return Coordinate.parse(pos[0], pos[1], CoordinateSource.fallback, confidence=0.1)


@dataclass(frozen=True)
class Resolution:
    coordinate: Coordinate
    strategy: str
    # (strategy name, reason) for every tier that failed before this one
    attempts: list[tuple[str, str]] = field(default_factory=list)


# Only these are worth remembering for 24 h; proxies and centroids are guesses.
_CACHEABLE = (CoordinateSource.persisted, CoordinateSource.geocoded)


class LocationResolver:
    def __init__(self, strategies: Sequence, cache=None):
        self.strategies = list(strategies)
        self.cache = cache

    async def resolve(self, location: Location) -> Resolution:
        attempts: list[tuple[str, str]] = []
        for strategy in self.strategies:
            try:
                coord = await strategy.resolve(location)
            except GeoError as e:
                log.warning("Resolve %s: %s failed: %s", location.key, strategy.name, e)
                attempts.append((strategy.name, f"{type(e).__name__}: {e}"))
                continue
            if coord is None:
                attempts.append((strategy.name, "no match"))
                continue

            log.info(
                "Resolved %s via %s -> %s, %s",
                location.key, strategy.name, coord.latitude, coord.longitude,
            )
            if self.cache is not None and coord.source in _CACHEABLE:
                try:
                    await self.cache.set(location.key, coord)
                except Exception as e:
                    log.warning("Geocode cache write failed for %s: %s", location.key, e)
            return Resolution(coordinate=coord, strategy=strategy.name, attempts=attempts)

        raise LocationUnresolvable(f"Unable to find location: {location.city}, {location.country}")


def default_strategies(
    *,
    cache,
    store,
    geocoder: Geocoder,
    entity_types: Sequence[EntityType],
    hubs_provider: Optional[HubsProvider] = None,
    persist_to: Optional[EntityType] = None,
) -> list:
    strategies = [
        CacheLookup(cache),
        PersistedLookup(store, entity_types),
        LiveGeocode(geocoder, store, persist_to),
    ]
    if hubs_provider is not None:
        strategies.append(NameMatchProxy(hubs_provider))
    strategies.append(CountryCentroidFallback())
    return strategies
