"""
Distance advisory for the supplier/customer logistics forms: how far is the
entity from the hub picked in the form, and which of the offered hubs is the
nearest. Straight-line distances only.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Optional, Sequence

from nearhub.context import GeoContext
from nearhub.distance import haversine_km, round_half_up
from nearhub.errors import GeoError, RateLimited
from nearhub.geo import Geocoder
from nearhub.models import Coordinate, EntityType, Hub, Location, is_too_far
from nearhub.store import RecordStore
from nearhub.strategies import CacheLookup, PersistedLookup

log = logging.getLogger("nearhub.advisory")

RATE_LIMITED_MSG = "Geocoding rate limited. Please try again in a moment."


@dataclass(frozen=True)
class DistanceInfo:
    distance_km: int
    warning: bool
    entity_coordinate: Coordinate
    hub_coordinate: Coordinate

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AdvisoryResult:
    info: Optional[DistanceInfo] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class NearestHubSuggestion:
    hub_id: str
    hub_name: str
    hub_code: str
    distance_km: int
    warning: bool

    def to_dict(self) -> dict:
        return asdict(self)


class DistanceAdvisor:
    def __init__(self, context: GeoContext, geocoder: Geocoder, store: RecordStore):
        self.context = context
        self.geocoder = geocoder
        self.store = store
        self._last_query = ""
        self._last_result: Optional[AdvisoryResult] = None
        self._last_nearest_query = ""
        self._last_nearest: Optional[NearestHubSuggestion] = None

    def clear(self) -> None:
        self._last_query = ""
        self._last_result = None
        self._last_nearest_query = ""
        self._last_nearest = None

    async def _entity_coordinate(self, location: Location) -> Optional[Coordinate]:
        """Cache, then any supplier, then any customer at the same place."""
        for strategy in (
            CacheLookup(self.context.geocode_cache),
            PersistedLookup(self.store, [EntityType.suppliers, EntityType.customers]),
        ):
            coord = await strategy.resolve(location)
            if coord is not None:
                log.info("Using existing coordinates for %s", location.key)
                return coord
        return None

    async def calculate_distance(self, city: str, country: str, hub_id: str) -> AdvisoryResult:
        if not city or not country or not hub_id:
            self._last_query = ""
            return AdvisoryResult()

        query_key = f"{city}|{country}|{hub_id}"
        if query_key == self._last_query and self._last_result is not None and not self._last_result.error:
            return self._last_result
        self._last_query = query_key

        result = await self._calculate(Location(city, country), hub_id)
        if result.error:
            log.warning("Distance calculation error: %s", result.error)
        self._last_result = result
        return result

    async def _calculate(self, location: Location, hub_id: str) -> AdvisoryResult:
        hub = await self.store.get_hub(hub_id)
        if hub is None:
            return AdvisoryResult(error="Hub not found")

        hub_coord = hub.coordinate
        if hub_coord is None:
            try:
                hub_coord = await self.geocoder.lookup(hub.city, hub.country)
            except RateLimited:
                return AdvisoryResult(error=RATE_LIMITED_MSG)
            except GeoError:
                return AdvisoryResult(
                    error=f"Unable to find hub location: {hub.city}, {hub.country}. "
                          "Please check the hub's city and country data."
                )

        entity_coord = await self._entity_coordinate(location)
        if entity_coord is None:
            log.info("Geocoding new entity location: %s", location.key)
            try:
                entity_coord = await self.geocoder.lookup(location.city, location.country)
            except RateLimited:
                return AdvisoryResult(error=RATE_LIMITED_MSG)
            except GeoError:
                return AdvisoryResult(
                    error=f"Unable to find location: {location.city}, {location.country}. "
                          "Please check the city and country spelling."
                )
            try:
                await self.context.geocode_cache.set(location.key, entity_coord)
            except Exception as e:
                log.warning("Geocode cache write failed for %s: %s", location.key, e)

        km = round_half_up(haversine_km(
            entity_coord.latitude, entity_coord.longitude, hub_coord.latitude, hub_coord.longitude
        ))
        return AdvisoryResult(info=DistanceInfo(
            distance_km=km,
            warning=is_too_far(km),
            entity_coordinate=entity_coord,
            hub_coordinate=hub_coord,
        ))

    async def find_nearest_hub(self, city: str, country: str, hubs: Sequence[Hub]) -> Optional[NearestHubSuggestion]:
        if not city or not country or not hubs:
            return None

        query_key = f"{city}|{country}|{','.join(h.id for h in hubs)}"
        if query_key == self._last_nearest_query:
            return self._last_nearest
        self._last_nearest_query = query_key
        self._last_nearest = None

        location = Location(city, country)
        entity_coord = await self._entity_coordinate(location)
        if entity_coord is None:
            try:
                entity_coord = await self.geocoder.lookup(city, country)
            except GeoError as e:
                log.info("Unable to geocode entity location for nearest hub %s: %s", location.key, e)
                return None

        best: Optional[NearestHubSuggestion] = None
        best_km = float("inf")
        for hub in hubs:
            hub_coord = hub.coordinate
            if hub_coord is None and hub.city and hub.country:
                try:
                    hub_coord = await self.geocoder.lookup(hub.city, hub.country)
                except GeoError as e:
                    log.info("Unable to get coordinates for hub %s: %s", hub.name, e)
                    continue
            if hub_coord is None:
                log.info("Unable to get coordinates for hub %s", hub.name)
                continue

            km = haversine_km(entity_coord.latitude, entity_coord.longitude, hub_coord.latitude, hub_coord.longitude)
            if km < best_km:
                best_km = km
                rounded = round_half_up(km)
                best = NearestHubSuggestion(
                    hub_id=hub.id,
                    hub_name=hub.name,
                    hub_code=hub.code,
                    distance_km=rounded,
                    warning=is_too_far(rounded),
                )

        self._last_nearest = best
        return best
