from typing import List, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from nearhub.models import EntityType
from nearhub.resolution import batch_geocode_entities, coordinate_status, geocode_and_update_entity
from ..deps import Services, get_services, require_api_key

router = APIRouter(prefix="/v1/coordinates", tags=["coordinates"])

EntityTable = Literal["hubs", "suppliers", "customers"]


class BatchGeocodeIn(BaseModel):
    entity_type: EntityTable
    limit: int = Field(10, ge=1, le=100)


class BatchGeocodeOut(BaseModel):
    processed: int
    successful: int
    failed: int


class EntityGeocodeIn(BaseModel):
    city: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class CoordinateStatusOut(BaseModel):
    entity_type: EntityTable
    total: int
    with_coordinates: int
    without_coordinates: int
    failed: int


def _after_update(services: Services, entity_type: EntityType) -> None:
    # new hub coordinates must be visible to the ranker before the TTL runs out
    if entity_type == EntityType.hubs:
        services.context.hub_cache.invalidate()


@router.post("/geocode", response_model=BatchGeocodeOut, dependencies=[Depends(require_api_key)])
async def batch_geocode(req: BatchGeocodeIn, services: Services = Depends(get_services)):
    entity_type = EntityType(req.entity_type)
    stats = await batch_geocode_entities(services.geocoder, services.store, entity_type, req.limit)
    if stats.successful:
        _after_update(services, entity_type)
    return stats.to_dict()


@router.post("/{entity_type}/{entity_id}/geocode", dependencies=[Depends(require_api_key)])
async def geocode_entity(
    entity_type: EntityTable,
    entity_id: str,
    req: EntityGeocodeIn,
    services: Services = Depends(get_services),
):
    et = EntityType(entity_type)
    ok = await geocode_and_update_entity(services.geocoder, services.store, et, entity_id, req.city, req.country)
    if ok:
        _after_update(services, et)
    return {"ok": ok, "entity_type": entity_type, "entity_id": entity_id}


@router.get("/status", response_model=List[CoordinateStatusOut])
async def status(services: Services = Depends(get_services)):
    return [s.to_dict() for s in await coordinate_status(services.store)]
