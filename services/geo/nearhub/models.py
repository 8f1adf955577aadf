import enum
import math
from dataclasses import asdict, dataclass, field
from typing import Optional

from nearhub.config import WARNING_THRESHOLD_KM


class CoordinateSource(str, enum.Enum):
    cached = "cached"
    persisted = "persisted"
    geocoded = "geocoded"
    fallback = "fallback"


class EntityType(str, enum.Enum):
    hubs = "hubs"
    suppliers = "suppliers"
    customers = "customers"

    @classmethod
    def for_kind(cls, kind: str) -> "EntityType":
        """
        'supplier' / 'customer' (as the forms pass them) -> record table.
        Table names are accepted as well.
        """
        k = (kind or "").strip().lower()
        mapping = {
            "supplier": cls.suppliers,
            "customer": cls.customers,
            "hub": cls.hubs,
        }
        if k in mapping:
            return mapping[k]
        return cls(k)


def is_valid_latlon(lat, lon) -> bool:
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float
    source: CoordinateSource = CoordinateSource.persisted
    confidence: float = 1.0

    @property
    def is_valid(self) -> bool:
        return is_valid_latlon(self.latitude, self.longitude)

    @classmethod
    def parse(cls, lat, lon, source: CoordinateSource, confidence: float = 1.0) -> Optional["Coordinate"]:
        """Build a coordinate from raw record/provider values; None if invalid."""
        if not is_valid_latlon(lat, lon):
            return None
        confidence = float(confidence)
        if not math.isfinite(confidence):
            confidence = 0.5
        confidence = min(max(confidence, 0.0), 1.0)
        return cls(float(lat), float(lon), source, confidence)

    def with_source(self, source: CoordinateSource) -> "Coordinate":
        return Coordinate(self.latitude, self.longitude, source, self.confidence)


@dataclass(frozen=True)
class Location:
    city: str
    country: str
    coordinate: Optional[Coordinate] = None

    @property
    def key(self) -> str:
        return f"{self.city}|{self.country}"


@dataclass(frozen=True)
class Hub:
    id: str
    name: str
    code: str = ""
    city: str = ""
    country: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_active: bool = True

    @property
    def coordinate(self) -> Optional[Coordinate]:
        return Coordinate.parse(self.latitude, self.longitude, CoordinateSource.persisted)


def is_too_far(distance_km: int) -> bool:
    """Ex Works pickup is flagged above the threshold (exclusive)."""
    return distance_km > WARNING_THRESHOLD_KM


@dataclass(frozen=True)
class RankedHub:
    hub_id: str
    hub_name: str
    hub_code: str
    hub_city: str
    hub_country: str
    distance_km: int
    warning: bool
    is_road_distance: bool = False

    @classmethod
    def from_hub(cls, hub: Hub, distance_km: int, is_road_distance: bool) -> "RankedHub":
        return cls(
            hub_id=hub.id,
            hub_name=hub.name,
            hub_code=hub.code,
            hub_city=hub.city,
            hub_country=hub.country,
            distance_km=distance_km,
            warning=is_too_far(distance_km),
            is_road_distance=is_road_distance,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class NearestHubsResult:
    hubs: list[RankedHub] = field(default_factory=list)
    error: Optional[str] = None
    # where the entity location came from (strategy name), if resolved
    resolved_by: Optional[str] = None
    location: Optional[Coordinate] = None

    def to_dict(self) -> dict:
        return {
            "hubs": [h.to_dict() for h in self.hubs],
            "error": self.error,
            "resolved_by": self.resolved_by,
            "location": asdict(self.location) if self.location else None,
        }


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: int
    duration_hours: int
    # False = heuristic estimate, True = measured by a routing service
    success: bool = False
    destination_id: Optional[str] = None


@dataclass(frozen=True)
class Destination:
    id: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class EntityLocation:
    """An entity record that still needs coordinates."""
    id: str
    city: str
    country: str


@dataclass(frozen=True)
class ResolutionStats:
    processed: int = 0
    successful: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CoordinateStatus:
    entity_type: EntityType
    total: int = 0
    with_coordinates: int = 0
    without_coordinates: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["entity_type"] = self.entity_type.value
        return d
