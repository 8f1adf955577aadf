# nearhub/config.py
# -*- coding: utf-8 -*-
import os

# ===================== Nominatim =====================

NOMINATIM_BASE_URL = os.environ.get("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org").rstrip("/")
# Nominatim usage policy: an identifying User-Agent is mandatory
NOMINATIM_UA = os.environ.get("NOMINATIM_USER_AGENT", "ProduceHubFinder/1.0 (contact@example.com)")
NOMINATIM_TIMEOUT_SEC = float(os.environ.get("NOMINATIM_TIMEOUT_SEC", "15"))

# Public instance allows 1 request/second per application; 1.1 s leaves headroom
NOMINATIM_MIN_INTERVAL_SEC = float(os.environ.get("NOMINATIM_MIN_INTERVAL_SEC", "1.1"))

# 0 = surface RateLimited immediately
NOMINATIM_429_RETRIES = int(os.environ.get("NOMINATIM_429_RETRIES", "0"))
NOMINATIM_BACKOFF_BASE_SEC = float(os.environ.get("NOMINATIM_BACKOFF_BASE_SEC", "2.0"))

# ===================== Caches =====================

GEOCODE_CACHE_TTL_SEC = int(os.environ.get("GEOCODE_CACHE_TTL_SEC", str(24 * 60 * 60)))  # 24 h
HUB_CACHE_TTL_SEC = int(os.environ.get("HUB_CACHE_TTL_SEC", str(5 * 60)))                # 5 min

# empty = in-process geocode cache only
REDIS_URL = os.environ.get("REDIS_URL", "").strip()

# ===================== Distance heuristics =====================
# Road distance is estimated from great-circle distance, no routing API involved.

EARTH_RADIUS_KM = 6371.0

# Tier bounds (straight-line km). Short trips run on direct local roads,
# long trips pick up highway detours and border crossings.
SHORT_TRIP_KM = 50.0
MEDIUM_TRIP_KM = 200.0

ROAD_FACTOR_SHORT = 1.2
ROAD_FACTOR_MEDIUM = 1.4
ROAD_FACTOR_LONG = 1.5

# Coarse terrain/border proxy: capped |dlat| + |dlon| in degrees, times a small weight.
# Not physically derived.
GEO_COMPLEXITY_CAP_DEG = 10.0
GEO_COMPLEXITY_PER_DEG = 0.02

# Average speed per tier: regional roads / highway mix / mostly highway
SPEED_SHORT_KMH = 60.0
SPEED_MEDIUM_KMH = 90.0
SPEED_LONG_KMH = 100.0

# Degraded estimate when no road estimate is available
STRAIGHT_LINE_ROAD_FACTOR = 1.3
STRAIGHT_LINE_SPEED_KMH = 80.0

# Batch estimation pacing (smoothness only, estimates are independent)
ROUTE_BATCH_SIZE = 10
ROUTE_BATCH_PAUSE_SEC = 0.05

# ===================== Hub ranking =====================

# Above this the customer/supplier collecting at the hub (Ex Works) is impractical
WARNING_THRESHOLD_KM = 150

# Refinement is limited to this many straight-line candidates within the cutoff.
# Hubs beyond the cutoff are never refined, even when nothing closer exists.
CANDIDATE_POOL_SIZE = 5
CANDIDATE_CUTOFF_KM = 400.0

REFINE_TIMEOUT_SEC = 3.0
RESULT_LIMIT = 2

# ===================== Coordinate resolution =====================

BATCH_GEOCODE_LIMIT = 10
BATCH_GEOCODE_PAUSE_SEC = 0.1

# Country-level centroids (capital cities), the last fallback tier.
# Keys are lowercase names and ISO codes as they appear in records.
COUNTRY_CENTROIDS: dict[str, tuple[float, float]] = {
    "uk": (51.5074, -0.1278),
    "united kingdom": (51.5074, -0.1278),
    "gb": (51.5074, -0.1278),
    "spain": (40.4168, -3.7038),
    "es": (40.4168, -3.7038),
    "france": (48.8566, 2.3522),
    "fr": (48.8566, 2.3522),
    "italy": (41.9028, 12.4964),
    "it": (41.9028, 12.4964),
    "germany": (52.5200, 13.4050),
    "de": (52.5200, 13.4050),
    "netherlands": (52.3676, 4.9041),
    "nl": (52.3676, 4.9041),
    "belgium": (50.8503, 4.3517),
    "be": (50.8503, 4.3517),
    "poland": (52.2297, 21.0122),
    "pl": (52.2297, 21.0122),
    "portugal": (39.3999, -8.2245),
    "pt": (39.3999, -8.2245),
}
