import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from nearhub.errors import LocationNotFound
from nearhub.geo import GeocodeResult
from nearhub.models import Coordinate, CoordinateSource
from nearhub_api.db import models
from nearhub_api.db.session import make_session_factory
from nearhub_api.db.store import SqlAlchemyRecordStore
from nearhub_api.deps import build_services
from nearhub_api.main import create_app

PLACES = {
    ("Venlo", "Netherlands"): (51.3704, 6.1724),
    ("Rotterdam", "Netherlands"): (51.9244, 4.4777),
    ("Eindhoven", "Netherlands"): (51.4416, 5.4697),
}


class StubGeocoder:
    def __init__(self):
        self.calls = []

    async def lookup(self, city, country):
        self.calls.append((city, country))
        pos = PLACES.get((city, country))
        if pos is None:
            raise LocationNotFound(f"Location not found: {city}, {country}")
        return Coordinate(pos[0], pos[1], CoordinateSource.geocoded, 0.6)

    async def geocode(self, city, country):
        try:
            return GeocodeResult(coordinate=await self.lookup(city, country))
        except LocationNotFound as e:
            return GeocodeResult(error=e)


@pytest.fixture
def session_factory():
    factory = make_session_factory(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    engine = factory.kw["bind"]
    models.Base.metadata.create_all(engine)
    with factory() as db:
        db.add_all([
            models.Hub(id="hub-venlo", name="Venlo Fresh Park", hub_code="VFP",
                       city_name="Venlo", country_code="NL", latitude=51.39, longitude=6.15),
            models.Hub(id="hub-london", name="London Gateway", hub_code="LGW",
                       city_name="London", country_code="UK", latitude=51.5074, longitude=-0.1278),
            models.Hub(id="hub-eindhoven", name="Eindhoven", hub_code="EHV",
                       city_name="Eindhoven", country_code="Netherlands"),
            models.Hub(id="hub-closed", name="Closed", hub_code="CLS", city_name="Venlo",
                       country_code="NL", latitude=51.37, longitude=6.17, is_active=False),
            models.Supplier(id="s1", name="Greenhouse BV", city="Venlo", country="Netherlands",
                            latitude=51.3704, longitude=6.1724),
            models.Supplier(id="s2", name="Port Fruit", city="Rotterdam", country="Netherlands"),
            models.Customer(id="c1", name="Lost Co", city="Atlantis", country="Greece"),
            models.Customer(id="c2", name="Gave Up Ltd", city="Nowhere", country="Narnia",
                            geocoding_failed=True, geocoding_attempts=3),
        ])
        db.commit()
    yield factory
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlAlchemyRecordStore(session_factory)


@pytest.fixture
def services(store):
    return build_services(store=store, geocoder=StubGeocoder())


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as c:
        yield c
