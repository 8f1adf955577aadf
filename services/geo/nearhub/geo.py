# ===== GEO: Nominatim lookup (rate-limited) =====

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from nearhub.config import (
    NOMINATIM_429_RETRIES,
    NOMINATIM_BACKOFF_BASE_SEC,
    NOMINATIM_BASE_URL,
    NOMINATIM_MIN_INTERVAL_SEC,
    NOMINATIM_TIMEOUT_SEC,
    NOMINATIM_UA,
)
from nearhub.errors import GeocodingError, GeoError, LocationNotFound, RateLimited
from nearhub.models import Coordinate, CoordinateSource, is_valid_latlon

log = logging.getLogger("nearhub.geo")


# Frequent typos and transliterations seen in supplier/customer records.
# Lookup table only, not a spell-checker.
CITY_CORRECTIONS = {
    "BARCALONA": "BARCELONA",
    "MADIRD": "MADRID",
    "LONDO": "LONDON",
    "PARIZ": "PARIS",
    "AMSTERDM": "AMSTERDAM",
    "MILA": "MILAN",
    "ROME": "ROMA",
}


def correct_city_name(city: str) -> str:
    return CITY_CORRECTIONS.get(city.strip().upper(), city)


def _redact_email(ua: str) -> str:
    if "@" not in ua:
        return ua
    return re.sub(r"\S+@\S+", "<redacted>", ua)


class RateLimiter:
    """
    Minimum spacing between outbound requests.
    One instance per process: every Geocoder must share it.
    """

    def __init__(self, min_interval: float = NOMINATIM_MIN_INTERVAL_SEC):
        self.min_interval = min_interval
        self._last_request = 0.0
        self._lock = asyncio.Lock()

    async def wait_for_next_slot(self) -> None:
        async with self._lock:
            delta = time.monotonic() - self._last_request
            if delta < self.min_interval:
                await asyncio.sleep(self.min_interval - delta)
            self._last_request = time.monotonic()


@dataclass(frozen=True)
class GeocodeResult:
    coordinate: Optional[Coordinate] = None
    error: Optional[GeoError] = None

    @property
    def success(self) -> bool:
        return self.coordinate is not None

    @property
    def rate_limited(self) -> bool:
        return isinstance(self.error, RateLimited)


class Geocoder:
    """
    City + country -> coordinate via Nominatim /search.

    `session` is optional: without it a ClientSession is opened per lookup.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: str = NOMINATIM_BASE_URL,
        user_agent: str = NOMINATIM_UA,
        timeout: float = NOMINATIM_TIMEOUT_SEC,
        rate_limit_retries: int = NOMINATIM_429_RETRIES,
        backoff_base: float = NOMINATIM_BACKOFF_BASE_SEC,
    ):
        self.rate_limiter = rate_limiter
        self._session = session
        self.search_url = f"{base_url.rstrip('/')}/search"
        self.user_agent = user_agent
        self.timeout = timeout
        self.rate_limit_retries = max(0, rate_limit_retries)
        self.backoff_base = backoff_base
        self.requests_sent = 0
        log.debug("Nominatim User-Agent: %s", _redact_email(user_agent))

    async def geocode(self, city: str, country: str) -> GeocodeResult:
        """Never raises: failures come back as GeocodeResult.error."""
        try:
            return GeocodeResult(coordinate=await self.lookup(city, country))
        except GeoError as e:
            log.warning("Geocoding failed for %r, %r: %s", city, country, e)
            return GeocodeResult(error=e)

    async def lookup(self, city: str, country: str) -> Coordinate:
        city = (city or "").strip()
        country = (country or "").strip()
        if not city or not country:
            raise GeocodingError("city and country are required")

        corrected = correct_city_name(city)
        query = f"{corrected}, {country}"
        if corrected != city:
            log.info("Geocoding: %s (corrected from: %s)", query, city)
        else:
            log.info("Geocoding: %s", query)

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RateLimited),
            wait=wait_exponential(multiplier=self.backoff_base),
            stop=stop_after_attempt(self.rate_limit_retries + 1),
            before_sleep=self._log_retry,
            reraise=True,
        )
        data = await retrying(self._search, query)

        if not isinstance(data, list):
            raise GeocodingError(f"unexpected response shape: {type(data).__name__}")
        if not data:
            raise LocationNotFound(f"Location not found: {query}")

        first = data[0] if isinstance(data[0], dict) else {}
        lat = first.get("lat")
        lon = first.get("lon")
        if not is_valid_latlon(lat, lon):
            raise GeocodingError(f"invalid coordinates received: lat={lat!r} lon={lon!r}")

        try:
            confidence = float(first.get("importance") or 0.5)
        except (TypeError, ValueError):
            confidence = 0.5

        coord = Coordinate.parse(lat, lon, CoordinateSource.geocoded, confidence)
        log.info("Geocoded %s -> %s, %s", query, coord.latitude, coord.longitude)
        return coord

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        log.warning(
            "Nominatim 429, retry %s in %.1fs",
            retry_state.attempt_number, retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    async def _search(self, query: str) -> Any:
        params = {
            "q": query,
            "format": "json",
            "limit": "1",
            "addressdetails": "1",
            "extratags": "1",
        }
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}

        await self.rate_limiter.wait_for_next_slot()
        self.requests_sent += 1
        try:
            if self._session is not None:
                return await self._get_json(self._session, params, headers)
            async with aiohttp.ClientSession() as s:
                return await self._get_json(s, params, headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GeocodingError(f"Nominatim request failed: {e!r}") from e

    async def _get_json(self, session, params: dict, headers: dict) -> Any:
        async with session.get(
            self.search_url,
            params=params,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as r:
            if r.status == 429:
                log.warning("Nominatim rate limit exceeded")
                raise RateLimited("Rate limit exceeded")
            if not 200 <= r.status < 300:
                raise GeocodingError(f"HTTP {r.status}")
            try:
                return await r.json(content_type=None)
            except ValueError as e:
                raise GeocodingError(f"invalid JSON from Nominatim: {e}") from e
