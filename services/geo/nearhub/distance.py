"""
Road distance / travel time estimates from coordinates.

No routing service is called: distance is the haversine great-circle distance
times a tiered road factor plus a small geographic-complexity term. Every
estimate carries success=False so consumers can show it as "estimated".
"""
import asyncio
import math
from typing import Sequence

from nearhub.config import (
    EARTH_RADIUS_KM,
    GEO_COMPLEXITY_CAP_DEG,
    GEO_COMPLEXITY_PER_DEG,
    MEDIUM_TRIP_KM,
    ROAD_FACTOR_LONG,
    ROAD_FACTOR_MEDIUM,
    ROAD_FACTOR_SHORT,
    ROUTE_BATCH_PAUSE_SEC,
    ROUTE_BATCH_SIZE,
    SHORT_TRIP_KM,
    SPEED_LONG_KMH,
    SPEED_MEDIUM_KMH,
    SPEED_SHORT_KMH,
    STRAIGHT_LINE_ROAD_FACTOR,
    STRAIGHT_LINE_SPEED_KMH,
)
from nearhub.models import Destination, RouteEstimate


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def road_factor(straight_km: float) -> float:
    if straight_km < SHORT_TRIP_KM:
        return ROAD_FACTOR_SHORT
    if straight_km < MEDIUM_TRIP_KM:
        return ROAD_FACTOR_MEDIUM
    return ROAD_FACTOR_LONG


def average_speed_kmh(straight_km: float) -> float:
    if straight_km < SHORT_TRIP_KM:
        return SPEED_SHORT_KMH
    if straight_km < MEDIUM_TRIP_KM:
        return SPEED_MEDIUM_KMH
    return SPEED_LONG_KMH


def geographic_complexity(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return min(abs(lat2 - lat1) + abs(lon2 - lon1), GEO_COMPLEXITY_CAP_DEG) * GEO_COMPLEXITY_PER_DEG


def estimate_route(lat1: float, lon1: float, lat2: float, lon2: float) -> RouteEstimate:
    straight = haversine_km(lat1, lon1, lat2, lon2)
    factor = road_factor(straight) + geographic_complexity(lat1, lon1, lat2, lon2)
    km = round_half_up(straight * factor)
    hours = round_half_up(km / average_speed_kmh(straight))
    return RouteEstimate(distance_km=km, duration_hours=hours, success=False)


def straight_line_estimate(straight_km: float) -> RouteEstimate:
    """Lowest-fidelity estimate, used when no road estimate could be made."""
    km = round_half_up(straight_km * STRAIGHT_LINE_ROAD_FACTOR)
    return RouteEstimate(
        distance_km=km,
        duration_hours=round_half_up(km / STRAIGHT_LINE_SPEED_KMH),
        success=False,
    )


async def _estimate_one(origin_lat: float, origin_lon: float, dest: Destination) -> RouteEstimate:
    est = estimate_route(origin_lat, origin_lon, dest.latitude, dest.longitude)
    return RouteEstimate(est.distance_km, est.duration_hours, est.success, destination_id=dest.id)


async def estimate_routes(
    origin_lat: float,
    origin_lon: float,
    destinations: Sequence[Destination],
    *,
    batch_size: int = ROUTE_BATCH_SIZE,
    pause: float = ROUTE_BATCH_PAUSE_SEC,
) -> list[RouteEstimate]:
    """
    One origin, N destinations. Results keep input order and carry the
    destination id.
    """
    results: list[RouteEstimate] = []
    for i in range(0, len(destinations), batch_size):
        batch = destinations[i:i + batch_size]
        results.extend(await asyncio.gather(*(_estimate_one(origin_lat, origin_lon, d) for d in batch)))
        if i + batch_size < len(destinations):
            await asyncio.sleep(pause)
    return results
