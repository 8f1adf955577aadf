from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from nearhub.models import CoordinateSource
from ..deps import Services, get_services

router = APIRouter(prefix="/v1/hubs", tags=["hubs"])


class CoordinateOut(BaseModel):
    latitude: float
    longitude: float
    source: CoordinateSource
    confidence: float


class RankedHubOut(BaseModel):
    hub_id: str
    hub_name: str
    hub_code: str
    hub_city: str
    hub_country: str
    distance_km: int
    warning: bool = Field(..., description="true above 150 km (Ex Works impractical)")
    is_road_distance: bool = Field(False, description="false = estimated distance")


class NearestHubsOut(BaseModel):
    hubs: List[RankedHubOut] = Field(default_factory=list)
    error: Optional[str] = None
    resolved_by: Optional[str] = None
    location: Optional[CoordinateOut] = None


class DistanceOut(BaseModel):
    distance_km: Optional[int] = None
    warning: bool = False
    entity_coordinate: Optional[CoordinateOut] = None
    hub_coordinate: Optional[CoordinateOut] = None
    error: Optional[str] = None


class SuggestionIn(BaseModel):
    city: str
    country: str
    hub_ids: List[str] = Field(default_factory=list)


class SuggestionOut(BaseModel):
    hub_id: str
    hub_name: str
    hub_code: str
    distance_km: int
    warning: bool


@router.get("/nearest", response_model=NearestHubsOut)
async def nearest_hubs(
    city: str = Query(""),
    country: str = Query(""),
    entity_type: Literal["supplier", "customer"] = "supplier",
    services: Services = Depends(get_services),
):
    result = await services.ranker.find_nearest_hubs(city, country, entity_type)
    return result.to_dict()


@router.get("/{hub_id}/distance", response_model=DistanceOut)
async def hub_distance(
    hub_id: str,
    city: str = Query(...),
    country: str = Query(...),
    services: Services = Depends(get_services),
):
    if await services.store.get_hub(hub_id) is None:
        raise HTTPException(404, "hub not found")
    res = await services.advisor.calculate_distance(city, country, hub_id)
    if res.info is None:
        return {"error": res.error}
    return {**res.info.to_dict(), "error": None}


@router.post("/suggestion", response_model=Optional[SuggestionOut])
async def nearest_hub_suggestion(req: SuggestionIn, services: Services = Depends(get_services)):
    hubs = []
    for hub_id in req.hub_ids:
        hub = await services.store.get_hub(hub_id)
        if hub is not None:
            hubs.append(hub)
    suggestion = await services.advisor.find_nearest_hub(req.city, req.country, hubs)
    return suggestion.to_dict() if suggestion else None
