"""Back-fill of missing entity coordinates (admin "resolve coordinates" action)."""
import asyncio
import logging

from nearhub.config import BATCH_GEOCODE_LIMIT, BATCH_GEOCODE_PAUSE_SEC
from nearhub.geo import Geocoder
from nearhub.models import CoordinateStatus, EntityType, ResolutionStats
from nearhub.store import RecordStore

log = logging.getLogger("nearhub.resolution")


async def geocode_and_update_entity(
    geocoder: Geocoder,
    store: RecordStore,
    entity_type: EntityType,
    entity_id: str,
    city: str,
    country: str,
) -> bool:
    result = await geocoder.geocode(city, country)
    try:
        if not result.success:
            log.warning("Failed to geocode %s, %s for %s %s", city, country, entity_type.value, entity_id)
            await store.mark_geocode_failed(entity_type, entity_id)
            return False

        coord = result.coordinate
        if not await store.update_coordinate(entity_type, entity_id, coord.latitude, coord.longitude):
            log.warning("Failed to update coordinates: %s %s not found", entity_type.value, entity_id)
            return False
    except Exception as e:
        # one bad record must not abort a batch
        log.error("Error geocoding %s %s: %s", entity_type.value, entity_id, e)
        return False

    log.info(
        "Updated coordinates for %s %s: %s, %s -> %s, %s",
        entity_type.value, entity_id, city, country, coord.latitude, coord.longitude,
    )
    return True


async def batch_geocode_entities(
    geocoder: Geocoder,
    store: RecordStore,
    entity_type: EntityType,
    limit: int = BATCH_GEOCODE_LIMIT,
    *,
    pause: float = BATCH_GEOCODE_PAUSE_SEC,
) -> ResolutionStats:
    """
    Geocode up to `limit` records that have a city/country but no coordinates.
    Runs sequentially: the shared rate limiter paces the requests anyway.
    """
    entities = await store.entities_missing_coordinates(entity_type, limit)
    if not entities:
        log.info("No %s need geocoding", entity_type.value)
        return ResolutionStats()

    log.info("Geocoding %s %s...", len(entities), entity_type.value)
    processed = successful = failed = 0
    for entity in entities:
        if not entity.city or not entity.country:
            continue
        processed += 1
        if await geocode_and_update_entity(geocoder, store, entity_type, entity.id, entity.city, entity.country):
            successful += 1
        else:
            failed += 1
        await asyncio.sleep(pause)

    log.info("Batch geocoding completed: %s successful, %s failed", successful, failed)
    return ResolutionStats(processed=processed, successful=successful, failed=failed)


async def coordinate_status(store: RecordStore, entity_types=tuple(EntityType)) -> list[CoordinateStatus]:
    return [await store.coordinate_status(t) for t in entity_types]
