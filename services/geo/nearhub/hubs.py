import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

from nearhub.config import (
    CANDIDATE_CUTOFF_KM,
    CANDIDATE_POOL_SIZE,
    REFINE_TIMEOUT_SEC,
    RESULT_LIMIT,
)
from nearhub.context import GeoContext
from nearhub.distance import estimate_routes, haversine_km, straight_line_estimate
from nearhub.errors import LocationUnresolvable, RoutingTimeout
from nearhub.geo import Geocoder
from nearhub.models import (
    Destination,
    EntityType,
    Hub,
    Location,
    NearestHubsResult,
    RankedHub,
    RouteEstimate,
)
from nearhub.store import RecordStore
from nearhub.strategies import LocationResolver, Resolution, default_strategies

log = logging.getLogger("nearhub.hubs")

RouteEstimator = Callable[[float, float, Sequence[Destination]], Awaitable[list[RouteEstimate]]]


class NearestHubRanker:
    """
    Closest 1-2 active hubs for a supplier/customer location.

    resolve location -> load hubs -> straight-line score -> refine top
    candidates -> rank. One instance per process: it remembers the last query
    and answers an identical repeat with the previous result.
    """

    def __init__(
        self,
        context: GeoContext,
        geocoder: Geocoder,
        store: RecordStore,
        *,
        route_estimator: RouteEstimator = estimate_routes,
        refine_timeout: float = REFINE_TIMEOUT_SEC,
        pool_size: int = CANDIDATE_POOL_SIZE,
        cutoff_km: float = CANDIDATE_CUTOFF_KM,
        limit: int = RESULT_LIMIT,
        persist_geocoded: bool = True,
    ):
        self.context = context
        self.geocoder = geocoder
        self.store = store
        self.route_estimator = route_estimator
        self.refine_timeout = refine_timeout
        self.pool_size = pool_size
        self.cutoff_km = cutoff_km
        self.limit = limit
        self.persist_geocoded = persist_geocoded

        self._last_query = ""
        self._last_task: Optional[asyncio.Future] = None

    async def load_hubs(self) -> list[Hub]:
        return await self.context.hub_cache.get(self.store.list_active_hubs)

    def clear(self) -> None:
        self._last_query = ""
        self._last_task = None

    async def find_nearest_hubs(self, city: str, country: str, entity_type: str) -> NearestHubsResult:
        if not city or not country:
            return NearestHubsResult()

        entity = EntityType.for_kind(entity_type)
        query_key = f"{city}|{country}|{entity_type}"
        if query_key == self._last_query and self._last_task is not None:
            log.debug("Skip duplicate hub query %s", query_key)
            return await asyncio.shield(self._last_task)

        task = asyncio.ensure_future(self._find(Location(city, country), entity))
        self._last_query = query_key
        self._last_task = task
        return await asyncio.shield(task)

    async def resolve_location(self, location: Location, entity: EntityType) -> Resolution:
        strategies = default_strategies(
            cache=self.context.geocode_cache,
            store=self.store,
            geocoder=self.geocoder,
            entity_types=[entity],
            hubs_provider=self.load_hubs,
            persist_to=entity if self.persist_geocoded else None,
        )
        return await LocationResolver(strategies, cache=self.context.geocode_cache).resolve(location)

    async def _find(self, location: Location, entity: EntityType) -> NearestHubsResult:
        try:
            resolution = await self.resolve_location(location, entity)
        except LocationUnresolvable as e:
            log.warning("Nearest hubs: %s", e)
            return NearestHubsResult(error=str(e))

        coord = resolution.coordinate
        try:
            hubs = await self.load_hubs()
        except Exception as e:
            log.warning("Nearest hubs: hub load failed: %s", e)
            return NearestHubsResult(error=f"Database error: {e}")

        if not hubs:
            return NearestHubsResult(
                error="No hubs with coordinates found",
                resolved_by=resolution.strategy,
                location=coord,
            )

        scored: list[tuple[float, Hub]] = []
        for hub in hubs:
            hc = hub.coordinate
            scored.append((haversine_km(coord.latitude, coord.longitude, hc.latitude, hc.longitude), hub))
        scored.sort(key=lambda x: x[0])

        candidates = [(km, hub) for km, hub in scored[:self.pool_size] if km <= self.cutoff_km]
        if not candidates:
            log.info(
                "Nearest hubs: nothing within %s km of %s, closest is %.0f km",
                self.cutoff_km, location.key, scored[0][0],
            )
            ranked = self._straight_line(scored[:self.limit])
        else:
            ranked = await self._refine(coord.latitude, coord.longitude, candidates)

        return NearestHubsResult(hubs=ranked, resolved_by=resolution.strategy, location=coord)

    def _straight_line(self, scored: list[tuple[float, Hub]]) -> list[RankedHub]:
        return [
            RankedHub.from_hub(hub, straight_line_estimate(km).distance_km, is_road_distance=False)
            for km, hub in scored
        ]

    async def _road_estimates(self, lat: float, lon: float, hubs: list[Hub]) -> dict[str, RouteEstimate]:
        destinations = [
            Destination(id=h.id, latitude=h.coordinate.latitude, longitude=h.coordinate.longitude) for h in hubs
        ]
        try:
            estimates = await asyncio.wait_for(
                self.route_estimator(lat, lon, destinations), timeout=self.refine_timeout
            )
        except asyncio.TimeoutError as e:
            raise RoutingTimeout(f"routing exceeded {self.refine_timeout}s") from e
        return {e.destination_id: e for e in estimates if e.destination_id is not None}

    async def _refine(self, lat: float, lon: float, candidates: list[tuple[float, Hub]]) -> list[RankedHub]:
        try:
            by_id = await self._road_estimates(lat, lon, [hub for _, hub in candidates])
        except RoutingTimeout as e:
            log.warning("Road distance timed out (%s), using estimates", e)
            return self._straight_line(candidates[:self.limit])
        except Exception as e:
            log.warning("Road distance calculation failed, using estimates: %r", e)
            return self._straight_line(candidates[:self.limit])

        refined: list[tuple[int, bool, Hub]] = []
        for km, hub in candidates:
            est = by_id.get(hub.id)
            if est is not None and est.distance_km > 0:
                refined.append((est.distance_km, est.success, hub))
            else:
                refined.append((straight_line_estimate(km).distance_km, False, hub))
        refined.sort(key=lambda x: x[0])

        return [
            RankedHub.from_hub(hub, distance_km, is_road_distance=is_road)
            for distance_km, is_road, hub in refined[:self.limit]
        ]
