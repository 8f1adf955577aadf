import pytest

from nearhub.models import EntityLocation, EntityType
from nearhub.resolution import batch_geocode_entities, coordinate_status, geocode_and_update_entity

from geo_fakes import VENLO, FakeGeocoder, FakeStore


@pytest.fixture
def store():
    return FakeStore(missing={
        EntityType.suppliers: [
            EntityLocation("s1", "Venlo", "Netherlands"),
            EntityLocation("s2", "Atlantis", "Greece"),
            EntityLocation("s3", "Venlo", "Netherlands"),
        ],
    })


@pytest.mark.asyncio
async def test_geocode_and_update_entity(store):
    geocoder = FakeGeocoder({("Venlo", "Netherlands"): VENLO})
    ok = await geocode_and_update_entity(geocoder, store, EntityType.suppliers, "s1", "Venlo", "Netherlands")
    assert ok
    assert store.updated == [(EntityType.suppliers, "s1", *VENLO)]


@pytest.mark.asyncio
async def test_failed_geocode_is_recorded(store):
    ok = await geocode_and_update_entity(FakeGeocoder(), store, EntityType.suppliers, "s2", "Atlantis", "Greece")
    assert not ok
    assert store.failed == [(EntityType.suppliers, "s2")]


@pytest.mark.asyncio
async def test_update_of_missing_record_fails(store):
    geocoder = FakeGeocoder({("Venlo", "Netherlands"): VENLO})
    assert not await geocode_and_update_entity(geocoder, store, EntityType.suppliers, "nope", "Venlo", "Netherlands")


@pytest.mark.asyncio
async def test_batch_counts(store):
    geocoder = FakeGeocoder({("Venlo", "Netherlands"): VENLO})
    stats = await batch_geocode_entities(geocoder, store, EntityType.suppliers, limit=10, pause=0)
    assert stats.to_dict() == {"processed": 3, "successful": 2, "failed": 1}


@pytest.mark.asyncio
async def test_batch_respects_limit(store):
    geocoder = FakeGeocoder({("Venlo", "Netherlands"): VENLO})
    stats = await batch_geocode_entities(geocoder, store, EntityType.suppliers, limit=1, pause=0)
    assert stats.processed == 1
    assert len(geocoder.calls) == 1


@pytest.mark.asyncio
async def test_batch_with_nothing_to_do(store):
    stats = await batch_geocode_entities(FakeGeocoder(), store, EntityType.customers, pause=0)
    assert stats.processed == 0


@pytest.mark.asyncio
async def test_coordinate_status_covers_every_table(store):
    statuses = await coordinate_status(store)
    assert [s.entity_type for s in statuses] == list(EntityType)
    assert statuses[1].to_dict()["entity_type"] == "suppliers"
    assert statuses[1].total == 3


@pytest.mark.asyncio
async def test_store_error_does_not_abort_batch():
    class FlakyStore(FakeStore):
        async def update_coordinate(self, entity_type, entity_id, lat, lon):
            if entity_id == "s1":
                raise RuntimeError("db connection lost")
            return await super().update_coordinate(entity_type, entity_id, lat, lon)

    store = FlakyStore(missing={
        EntityType.suppliers: [EntityLocation(f"s{i}", "Venlo", "Netherlands") for i in (1, 2, 3)],
    })
    geocoder = FakeGeocoder({("Venlo", "Netherlands"): VENLO})

    stats = await batch_geocode_entities(geocoder, store, EntityType.suppliers, pause=0)

    assert stats.to_dict() == {"processed": 3, "successful": 2, "failed": 1}
    assert [u[1] for u in store.updated] == ["s2", "s3"]


@pytest.mark.asyncio
async def test_failure_flag_error_is_contained():
    class NoFlags(FakeStore):
        async def mark_geocode_failed(self, entity_type, entity_id):
            raise RuntimeError("read-only")

    ok = await geocode_and_update_entity(FakeGeocoder(), NoFlags(), EntityType.suppliers, "s2", "Atlantis", "Greece")
    assert ok is False
