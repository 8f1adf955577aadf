import pytest

from nearhub.cache import MemoryGeocodeCache
from nearhub.errors import LocationUnresolvable, RateLimited
from nearhub.models import Coordinate, CoordinateSource, EntityType, Location
from nearhub.strategies import (
    CacheLookup,
    CountryCentroidFallback,
    LiveGeocode,
    LocationResolver,
    NameMatchProxy,
    PersistedLookup,
    default_strategies,
)

from geo_fakes import VENLO, FakeGeocoder, FakeStore, make_hub

VENLO_NL = Location("Venlo", "Netherlands")


def resolver(cache, store, geocoder, hubs=None, persist_to=None):
    async def hubs_provider():
        return hubs or []

    strategies = default_strategies(
        cache=cache,
        store=store,
        geocoder=geocoder,
        entity_types=[EntityType.suppliers],
        hubs_provider=hubs_provider,
        persist_to=persist_to,
    )
    return LocationResolver(strategies, cache=cache)


@pytest.mark.asyncio
async def test_cache_wins_before_anything_else():
    cache = MemoryGeocodeCache()
    await cache.set(VENLO_NL.key, Coordinate(*VENLO))
    geocoder = FakeGeocoder()

    res = await resolver(cache, FakeStore(), geocoder).resolve(VENLO_NL)

    assert res.strategy == "cache"
    assert res.coordinate.source is CoordinateSource.cached
    assert geocoder.calls == []


@pytest.mark.asyncio
async def test_persisted_coordinate_is_used_and_cached():
    cache = MemoryGeocodeCache()
    store = FakeStore(coords={(EntityType.suppliers, "Venlo", "Netherlands"): VENLO})
    geocoder = FakeGeocoder()

    res = await resolver(cache, store, geocoder).resolve(VENLO_NL)

    assert res.strategy == "persisted"
    assert res.attempts == [("cache", "no match")]
    assert geocoder.calls == []
    assert await cache.get(VENLO_NL.key) is not None


@pytest.mark.asyncio
async def test_geocoded_coordinate_is_written_back():
    cache = MemoryGeocodeCache()
    store = FakeStore()
    geocoder = FakeGeocoder({("Venlo", "Netherlands"): VENLO})

    res = await resolver(cache, store, geocoder, persist_to=EntityType.suppliers).resolve(VENLO_NL)

    assert res.strategy == "geocode"
    assert res.coordinate.source is CoordinateSource.geocoded
    assert store.location_updates == [(EntityType.suppliers, "Venlo", "Netherlands", *VENLO)]


@pytest.mark.asyncio
async def test_rate_limit_falls_through_to_hub_name_match():
    cache = MemoryGeocodeCache()
    hub = make_hub("v1", 51.4, 6.2, city="Venlo-Blerick", country="NL")
    geocoder = FakeGeocoder({("Venlo", "Netherlands"): RateLimited("429")})

    res = await resolver(cache, FakeStore(), geocoder, hubs=[hub]).resolve(VENLO_NL)

    assert res.strategy == "hub_name_match"
    assert res.coordinate.source is CoordinateSource.fallback
    assert res.attempts[-1][0] == "geocode"
    assert "RateLimited" in res.attempts[-1][1]
    # guesses are not remembered
    assert await cache.get(VENLO_NL.key) is None


@pytest.mark.asyncio
async def test_country_centroid_is_last_resort():
    res = await resolver(MemoryGeocodeCache(), FakeStore(), FakeGeocoder()).resolve(Location("Nowhere", "Spain"))
    assert res.strategy == "country_centroid"
    assert res.coordinate.confidence == pytest.approx(0.1)
    assert res.coordinate.source is CoordinateSource.fallback


@pytest.mark.asyncio
async def test_unresolvable_when_every_tier_fails():
    with pytest.raises(LocationUnresolvable) as exc:
        await resolver(MemoryGeocodeCache(), FakeStore(), FakeGeocoder()).resolve(Location("Nowhere", "Narnia"))
    assert "Nowhere, Narnia" in str(exc.value)


@pytest.mark.asyncio
async def test_broken_cache_is_skipped():
    class Broken:
        async def get(self, key):
            raise ConnectionError("redis down")

    assert await CacheLookup(Broken()).resolve(VENLO_NL) is None


@pytest.mark.asyncio
async def test_persisted_lookup_survives_store_errors():
    class Flaky(FakeStore):
        async def find_coordinate(self, entity_type, city, country):
            if entity_type is EntityType.suppliers:
                raise RuntimeError("db gone")
            return VENLO

    coord = await PersistedLookup(Flaky(), [EntityType.suppliers, EntityType.customers]).resolve(VENLO_NL)
    assert coord.latitude == VENLO[0]


@pytest.mark.asyncio
async def test_live_geocode_write_back_failure_keeps_coordinate():
    class ReadOnly(FakeStore):
        async def update_coordinates_for_location(self, *args):
            raise RuntimeError("read-only")

    geocoder = FakeGeocoder({("Venlo", "Netherlands"): VENLO})
    coord = await LiveGeocode(geocoder, ReadOnly(), EntityType.suppliers).resolve(VENLO_NL)
    assert coord.latitude == VENLO[0]


@pytest.mark.asyncio
async def test_name_match_also_checks_hub_name():
    async def hubs():
        return [make_hub("x", 51.0, 4.0, city="Elsewhere", name="Venlo Fresh Park")]

    assert await NameMatchProxy(hubs).resolve(VENLO_NL) is not None


@pytest.mark.asyncio
async def test_centroid_matches_country_exactly():
    fallback = CountryCentroidFallback({"spain": (40.0, -3.7)})
    assert await fallback.resolve(Location("x", " SPAIN ")) is not None
    assert await fallback.resolve(Location("x", "New Spain")) is None
