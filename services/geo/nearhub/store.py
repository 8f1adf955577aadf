from typing import Optional, Protocol

from nearhub.models import CoordinateStatus, EntityLocation, EntityType, Hub


class RecordStore(Protocol):
    """
    Persistence the core reads hubs and entity coordinates from.
    Implemented by the API service on top of its database.
    """

    async def list_active_hubs(self) -> list[Hub]:
        """Active hubs that have latitude and longitude."""

    async def get_hub(self, hub_id: str) -> Optional[Hub]:
        ...

    async def find_coordinate(self, entity_type: EntityType, city: str, country: str) -> Optional[tuple[float, float]]:
        """Any stored (lat, lon) of an entity at exactly this city/country."""

    async def update_coordinate(self, entity_type: EntityType, entity_id: str, lat: float, lon: float) -> bool:
        """False when no such record exists."""

    async def update_coordinates_for_location(
        self, entity_type: EntityType, city: str, country: str, lat: float, lon: float
    ) -> int:
        """Returns the number of updated records."""

    async def mark_geocode_failed(self, entity_type: EntityType, entity_id: str) -> None:
        ...

    async def entities_missing_coordinates(self, entity_type: EntityType, limit: int) -> list[EntityLocation]:
        ...

    async def coordinate_status(self, entity_type: EntityType) -> CoordinateStatus:
        ...
