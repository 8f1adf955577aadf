import os
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, Request

from nearhub.advisory import DistanceAdvisor
from nearhub.context import GeoContext, build_context
from nearhub.geo import Geocoder
from nearhub.hubs import NearestHubRanker
from nearhub.store import RecordStore

API_SECRET = os.getenv("API_SECRET", "change_me_api")


@dataclass
class Services:
    """Everything the routes need, built once per process."""
    context: GeoContext
    geocoder: Geocoder
    store: RecordStore
    ranker: NearestHubRanker
    advisor: DistanceAdvisor
    redis: object = None


def build_services(store=None, redis=None, geocoder: Optional[Geocoder] = None) -> Services:
    if store is None:
        from .db.store import SqlAlchemyRecordStore
        store = SqlAlchemyRecordStore()
    context = build_context(redis)
    geocoder = geocoder or Geocoder(context.rate_limiter)
    return Services(
        context=context,
        geocoder=geocoder,
        store=store,
        ranker=NearestHubRanker(context, geocoder, store),
        advisor=DistanceAdvisor(context, geocoder, store),
        redis=redis,
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="service not ready")
    return services


def require_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
    if not API_SECRET:
        return
    if x_api_key != API_SECRET:
        raise HTTPException(status_code=401, detail="unauthorized")
