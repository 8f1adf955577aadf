# nearhub_api/main.py
# -*- coding: utf-8 -*-
"""
Hub finder API (FastAPI)
- /                                  : ping
- /v1/health                         : health (redis ping)
- /v1/hubs/nearest                   : closest 1-2 hubs for a supplier/customer location
- /v1/hubs/{hub_id}/distance         : distance advisory entity <-> selected hub
- /v1/hubs/suggestion                : nearest of the hubs offered in a form
- /v1/coordinates/geocode            : back-fill missing coordinates (batch)
- /v1/coordinates/{type}/{id}/geocode: geocode one record
- /v1/coordinates/status             : coordinate coverage per table

Design notes
- Hub suggestions are best effort: failures come back as 200 with an "error"
  field, never as 5xx, so forms can show a soft message.
- Redis is optional. When REDIS_URL is set and reachable, geocode results are
  cached there and shared between workers; otherwise an in-process cache is used.
- One rate limiter per process paces every Nominatim request.
"""

import logging
from datetime import datetime
from typing import Optional

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nearhub.config import REDIS_URL
from .deps import Services, build_services
from .routers import coordinates, hubs

# ---------- Logging ----------
logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
log = logging.getLogger("api")


async def _connect_redis() -> Optional["aioredis.Redis"]:
    if not REDIS_URL:
        log.info("Redis disabled. Running with in-process geocode cache.")
        return None
    try:
        redis = aioredis.from_url(REDIS_URL, decode_responses=True)
        await redis.ping()
        log.info("Redis connected: %s", REDIS_URL)
        return redis
    except Exception as e:
        log.warning("Redis connect failed (%s). Running without Redis.", e)
        return None


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(title="Hub Finder API", version="1.0.0")
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(hubs.router)
    app.include_router(coordinates.router)

    # ---------- Routes ----------
    @app.get("/", tags=["health"])
    async def root() -> dict:
        return {"ok": True, "service": "hub-finder-api", "time": datetime.utcnow().isoformat()}

    @app.get("/v1/health", tags=["health"])
    async def health() -> dict:
        status = {"ok": app.state.services is not None, "redis": False}
        redis = app.state.services.redis if app.state.services else None
        if redis is not None:
            try:
                status["redis"] = bool(await redis.ping())
            except Exception:
                status["redis"] = False
        return status

    # ---------- Lifecycle ----------
    @app.on_event("startup")
    async def on_startup() -> None:
        if app.state.services is None:
            app.state.services = build_services(redis=await _connect_redis())

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        redis = app.state.services.redis if app.state.services else None
        if redis is not None:
            try:
                await redis.aclose()
            except Exception as e:
                log.warning("Redis close failed: %s", e)

    return app


app = create_app()
