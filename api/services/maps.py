"""
Maps Service — DaData geocoding and OSRM routing.

Strategy:
  1. Geocode cache in Redis (short TTL) keyed by the normalised address
  2. Single attempt per provider call with a tight timeout
  3. Failures return None; callers decide on the fallback
"""

import hashlib
import json
import logging
from dataclasses import asdict, dataclass

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from api.config import settings

logger = logging.getLogger(__name__)

DADATA_SUGGEST_URL = "https://suggestions.dadata.ru/suggestions/api/4_1/rs/suggest/address"


@dataclass
class GeocodeResult:
    latitude: float
    longitude: float
    full_address: str
    city: str
    region: str


def _address_hash(address: str) -> str:
    """Normalize and hash an address for cache key."""
    normalized = " ".join(address.strip().lower().split())
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


def enrich_address(address: str, city: str) -> str:
    """Prefix the service city unless the address already names it."""
    if not city or city.lower() in address.lower():
        return address
    return f"{city}, {address}"


# ── Geocoding ──────────────────────────────────────────────

class DaDataGeocoder:
    """Address → coordinates via the DaData suggestions API."""

    def __init__(
        self,
        api_key: str,
        city: str = "",
        http: httpx.AsyncClient | None = None,
        redis: aioredis.Redis | None = None,
        cache_ttl: int = 30 * 60,
        timeout: float = 5.0,
        url: str = DADATA_SUGGEST_URL,
    ):
        self.api_key = api_key
        self.city = city
        self.url = url
        self.cache_ttl = cache_ttl
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._redis = redis

    async def resolve(self, address: str) -> GeocodeResult | None:
        query = enrich_address(address, self.city)
        cache_key = f"geo:{_address_hash(query)}"

        cached = await self._cache_get(cache_key)
        if cached is not None:
            return cached

        result = await self._fetch(query)
        if result is not None:
            await self._cache_set(cache_key, result)
        return result

    async def _fetch(self, query: str) -> GeocodeResult | None:
        if not self.api_key:
            logger.warning("DADATA_API_KEY not set, cannot geocode %r", query)
            return None

        try:
            resp = await self._http.post(
                self.url,
                json={"query": query, "count": 1},
                headers={
                    "Authorization": f"Token {self.api_key}",
                    "Accept": "application/json",
                },
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("DaData geocode failed for %r: %s", query, e)
            return None

        suggestions = data.get("suggestions") or []
        if not suggestions:
            logger.info("DaData found nothing for %r", query)
            return None

        first = suggestions[0]
        details = first.get("data") or {}
        lat, lon = details.get("geo_lat"), details.get("geo_lon")
        if not lat or not lon:
            logger.info("DaData returned no coordinates for %r", query)
            return None

        try:
            return GeocodeResult(
                latitude=float(lat),
                longitude=float(lon),
                full_address=first.get("value") or query,
                city=details.get("city") or "",
                region=details.get("region") or "",
            )
        except ValueError:
            logger.warning("DaData returned malformed coordinates %r, %r", lat, lon)
            return None

    async def _cache_get(self, key: str) -> GeocodeResult | None:
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            logger.warning("Geocode cache read failed: %s", e)
            return None
        if not raw:
            return None
        try:
            return GeocodeResult(**json.loads(raw))
        except (ValueError, TypeError):
            logger.warning("Discarding corrupt geocode cache entry %s", key)
            return None

    async def _cache_set(self, key: str, result: GeocodeResult) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(key, json.dumps(asdict(result)), ex=self.cache_ttl)
        except RedisError as e:
            logger.warning("Geocode cache write failed: %s", e)


# ── Routing ────────────────────────────────────────────────

class OsrmRouter:
    """Road distance between two points via an OSRM server."""

    def __init__(
        self,
        base_url: str,
        http: httpx.AsyncClient | None = None,
        timeout: float = 3.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def road_distance(
        self, lat1: float, lng1: float, lat2: float, lng2: float,
    ) -> float | None:
        # OSRM takes lon,lat
        url = f"{self.base_url}/route/v1/driving/{lng1},{lat1};{lng2},{lat2}"
        try:
            resp = await self._http.get(url, params={"overview": "false"})
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("OSRM routing failed: %s", e)
            return None

        if data.get("code") != "Ok":
            logger.warning("OSRM status %s", data.get("code"))
            return None

        routes = data.get("routes") or []
        distance_m = routes[0].get("distance") if routes else None
        if not isinstance(distance_m, (int, float)):
            logger.warning("OSRM response without a route distance")
            return None
        return distance_m / 1000.0


# ── Singletons ─────────────────────────────────────────────

_geocoder: DaDataGeocoder | None = None
_router: OsrmRouter | None = None


def get_geocoder() -> DaDataGeocoder:
    global _geocoder
    if _geocoder is None:
        redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True) if settings.REDIS_URL else None
        _geocoder = DaDataGeocoder(
            api_key=settings.DADATA_API_KEY,
            city=settings.REGION_CITY,
            redis=redis,
            cache_ttl=settings.GEOCODE_CACHE_TTL,
            timeout=settings.GEOCODE_TIMEOUT_SEC,
        )
    return _geocoder


def get_router() -> OsrmRouter:
    global _router
    if _router is None:
        _router = OsrmRouter(settings.OSRM_URL, timeout=settings.ROUTING_TIMEOUT_SEC)
    return _router
