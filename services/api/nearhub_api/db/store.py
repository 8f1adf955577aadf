import asyncio
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import sessionmaker

from nearhub.models import CoordinateStatus, EntityLocation, EntityType, Hub
from . import models
from .session import SessionLocal, session_scope

# table -> (model, city column, country column)
_TABLES = {
    EntityType.hubs: (models.Hub, models.Hub.city_name, models.Hub.country_code),
    EntityType.suppliers: (models.Supplier, models.Supplier.city, models.Supplier.country),
    EntityType.customers: (models.Customer, models.Customer.city, models.Customer.country),
}


def _to_hub(row: models.Hub) -> Hub:
    return Hub(
        id=row.id,
        name=row.name,
        code=row.hub_code or "",
        city=row.city_name or "",
        country=row.country_code or "",
        latitude=row.latitude,
        longitude=row.longitude,
        is_active=bool(row.is_active),
    )


class SqlAlchemyRecordStore:
    """
    RecordStore over the service database. Sessions are synchronous, so every
    call runs in a worker thread to keep the event loop free.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    async def _run(self, fn, *args):
        return await asyncio.to_thread(fn, *args)

    # ----- hubs -----

    def _list_active_hubs(self) -> list[Hub]:
        with session_scope(self.session_factory) as db:
            rows = db.scalars(
                select(models.Hub).where(
                    models.Hub.is_active.is_(True),
                    models.Hub.latitude.is_not(None),
                    models.Hub.longitude.is_not(None),
                )
            ).all()
            return [_to_hub(r) for r in rows]

    async def list_active_hubs(self) -> list[Hub]:
        return await self._run(self._list_active_hubs)

    def _get_hub(self, hub_id: str) -> Optional[Hub]:
        with session_scope(self.session_factory) as db:
            row = db.get(models.Hub, hub_id)
            return _to_hub(row) if row else None

    async def get_hub(self, hub_id: str) -> Optional[Hub]:
        return await self._run(self._get_hub, hub_id)

    # ----- entity coordinates -----

    def _find_coordinate(self, entity_type: EntityType, city: str, country: str) -> Optional[tuple[float, float]]:
        model, city_col, country_col = _TABLES[entity_type]
        with session_scope(self.session_factory) as db:
            row = db.execute(
                select(model.latitude, model.longitude)
                .where(
                    city_col == city,
                    country_col == country,
                    model.latitude.is_not(None),
                    model.longitude.is_not(None),
                )
                .limit(1)
            ).first()
            return (row[0], row[1]) if row else None

    async def find_coordinate(self, entity_type: EntityType, city: str, country: str) -> Optional[tuple[float, float]]:
        return await self._run(self._find_coordinate, entity_type, city, country)

    def _update_coordinate(self, entity_type: EntityType, entity_id: str, lat: float, lon: float) -> bool:
        model, _, _ = _TABLES[entity_type]
        with session_scope(self.session_factory) as db:
            row = db.get(model, entity_id)
            if row is None:
                return False
            row.latitude = lat
            row.longitude = lon
            row.coordinates_last_updated = datetime.utcnow()
            row.geocoding_failed = False
            return True

    async def update_coordinate(self, entity_type: EntityType, entity_id: str, lat: float, lon: float) -> bool:
        return await self._run(self._update_coordinate, entity_type, entity_id, lat, lon)

    def _update_coordinates_for_location(
        self, entity_type: EntityType, city: str, country: str, lat: float, lon: float
    ) -> int:
        model, city_col, country_col = _TABLES[entity_type]
        with session_scope(self.session_factory) as db:
            res = db.execute(
                update(model)
                .where(city_col == city, country_col == country)
                .values(
                    latitude=lat,
                    longitude=lon,
                    coordinates_last_updated=datetime.utcnow(),
                    geocoding_failed=False,
                )
            )
            return res.rowcount or 0

    async def update_coordinates_for_location(
        self, entity_type: EntityType, city: str, country: str, lat: float, lon: float
    ) -> int:
        return await self._run(self._update_coordinates_for_location, entity_type, city, country, lat, lon)

    def _mark_geocode_failed(self, entity_type: EntityType, entity_id: str) -> None:
        model, _, _ = _TABLES[entity_type]
        with session_scope(self.session_factory) as db:
            row = db.get(model, entity_id)
            if row is None:
                return
            row.geocoding_failed = True
            row.geocoding_attempts = (row.geocoding_attempts or 0) + 1

    async def mark_geocode_failed(self, entity_type: EntityType, entity_id: str) -> None:
        await self._run(self._mark_geocode_failed, entity_type, entity_id)

    def _entities_missing_coordinates(self, entity_type: EntityType, limit: int) -> list[EntityLocation]:
        # failed rows are skipped, otherwise a batch loop would retry them forever
        model, city_col, country_col = _TABLES[entity_type]
        with session_scope(self.session_factory) as db:
            rows = db.execute(
                select(model.id, city_col, country_col)
                .where(
                    model.latitude.is_(None),
                    city_col.is_not(None),
                    country_col.is_not(None),
                    model.geocoding_failed.is_not(True),
                )
                .limit(limit)
            ).all()
            return [EntityLocation(id=r[0], city=r[1], country=r[2]) for r in rows]

    async def entities_missing_coordinates(self, entity_type: EntityType, limit: int) -> list[EntityLocation]:
        return await self._run(self._entities_missing_coordinates, entity_type, limit)

    def _coordinate_status(self, entity_type: EntityType) -> CoordinateStatus:
        model, _, _ = _TABLES[entity_type]
        has_coords = model.latitude.is_not(None) & model.longitude.is_not(None)
        with session_scope(self.session_factory) as db:
            total = db.scalar(select(func.count()).select_from(model)) or 0
            with_coords = db.scalar(select(func.count()).select_from(model).where(has_coords)) or 0
            failed = db.scalar(
                select(func.count()).select_from(model).where(model.geocoding_failed.is_(True))
            ) or 0
        return CoordinateStatus(
            entity_type=entity_type,
            total=total,
            with_coordinates=with_coords,
            without_coordinates=total - with_coords,
            failed=failed,
        )

    async def coordinate_status(self, entity_type: EntityType) -> CoordinateStatus:
        return await self._run(self._coordinate_status, entity_type)
