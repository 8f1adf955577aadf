import pytest

from nearhub.context import GeoContext
from nearhub.geo import RateLimiter

from geo_fakes import LONDON, make_hub


@pytest.fixture
def context():
    return GeoContext(rate_limiter=RateLimiter(0))


@pytest.fixture
def london_hub():
    return make_hub("ldn", *LONDON, city="London", country="UK", name="London Hub")
