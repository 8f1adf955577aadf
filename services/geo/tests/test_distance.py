import pytest

from nearhub.distance import (
    average_speed_kmh,
    estimate_route,
    estimate_routes,
    haversine_km,
    road_factor,
    round_half_up,
    straight_line_estimate,
)
from nearhub.models import Destination

from geo_fakes import LONDON, VENLO


def test_haversine_zero_for_same_point():
    assert haversine_km(*VENLO, *VENLO) == 0


def test_haversine_symmetric():
    assert haversine_km(*VENLO, *LONDON) == pytest.approx(haversine_km(*LONDON, *VENLO))


def test_haversine_venlo_london():
    assert haversine_km(*VENLO, *LONDON) == pytest.approx(436.8, abs=0.5)


@pytest.mark.parametrize("km,factor,speed", [
    (10, 1.2, 60),
    (49.9, 1.2, 60),
    (50, 1.4, 90),
    (199.9, 1.4, 90),
    (200, 1.5, 100),
    (900, 1.5, 100),
])
def test_tiers(km, factor, speed):
    assert road_factor(km) == factor
    assert average_speed_kmh(km) == speed


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(3.49) == 3


def test_estimate_route_venlo_london():
    est = estimate_route(*VENLO, *LONDON)
    # 436.8 km * (1.5 + 6.4372 deg * 0.02)
    assert est.distance_km == 711
    assert est.duration_hours == 7
    assert est.success is False


def test_estimate_route_same_point():
    est = estimate_route(*VENLO, *VENLO)
    assert est.distance_km == 0
    assert est.duration_hours == 0


def test_estimate_never_shorter_than_straight_line():
    straight = haversine_km(51.0, 4.0, 51.2, 4.1)
    assert estimate_route(51.0, 4.0, 51.2, 4.1).distance_km >= int(straight)


def test_straight_line_estimate():
    est = straight_line_estimate(100)
    assert est.distance_km == 130
    assert est.duration_hours == 2
    assert est.success is False


@pytest.mark.asyncio
async def test_estimate_routes_keeps_order_and_ids():
    dests = [Destination(id=str(i), latitude=51.0 + i * 0.1, longitude=4.0) for i in range(7)]
    out = await estimate_routes(51.0, 4.0, dests, batch_size=3, pause=0)
    assert [e.destination_id for e in out] == [d.id for d in dests]
    assert out[0].distance_km == 0
    assert [e.distance_km for e in out] == sorted(e.distance_km for e in out)


@pytest.mark.asyncio
async def test_estimate_routes_empty():
    assert await estimate_routes(51.0, 4.0, []) == []
