"""Tests for the DaData geocoder and OSRM router against mocked HTTP."""

import json
from unittest.mock import AsyncMock

import httpx
from redis.exceptions import RedisError

from api.services.maps import DaDataGeocoder, GeocodeResult, OsrmRouter, enrich_address

SUGGESTION = {
    "suggestions": [{
        "value": "г Челябинск, ул Ленина, д 44",
        "data": {
            "geo_lat": "55.1599",
            "geo_lon": "61.4026",
            "city": "Челябинск",
            "region": "Челябинская",
        },
    }],
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_enrich_address_adds_city_once():
    assert enrich_address("Lenina 44", "Челябинск") == "Челябинск, Lenina 44"
    assert enrich_address("челябинск, Lenina 44", "Челябинск") == "челябинск, Lenina 44"
    assert enrich_address("Lenina 44", "") == "Lenina 44"


async def test_geocoder_parses_first_suggestion():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=SUGGESTION)

    geocoder = DaDataGeocoder(api_key="secret", city="Челябинск", http=_client(handler))
    result = await geocoder.resolve("Lenina 44")

    assert result == GeocodeResult(
        latitude=55.1599,
        longitude=61.4026,
        full_address="г Челябинск, ул Ленина, д 44",
        city="Челябинск",
        region="Челябинская",
    )
    assert seen[0].headers["Authorization"] == "Token secret"
    assert json.loads(seen[0].content) == {"query": "Челябинск, Lenina 44", "count": 1}


async def test_geocoder_no_match_is_none():
    geocoder = DaDataGeocoder(
        api_key="secret",
        http=_client(lambda request: httpx.Response(200, json={"suggestions": []})),
    )
    assert await geocoder.resolve("Lenina 44") is None


async def test_geocoder_without_coordinates_is_none():
    body = {"suggestions": [{"value": "Челябинск", "data": {"geo_lat": None, "geo_lon": None}}]}
    geocoder = DaDataGeocoder(api_key="secret", http=_client(lambda request: httpx.Response(200, json=body)))
    assert await geocoder.resolve("Челябинск") is None


async def test_geocoder_http_error_is_none():
    geocoder = DaDataGeocoder(api_key="secret", http=_client(lambda request: httpx.Response(503)))
    assert await geocoder.resolve("Lenina 44") is None


async def test_geocoder_without_key_skips_request():
    def handler(request):
        raise AssertionError("no request expected")

    geocoder = DaDataGeocoder(api_key="", http=_client(handler))
    assert await geocoder.resolve("Lenina 44") is None


async def test_geocoder_caches_results():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=SUGGESTION)

    redis = AsyncMock()
    redis.get.return_value = None
    geocoder = DaDataGeocoder(api_key="secret", http=_client(handler), redis=redis, cache_ttl=60)

    result = await geocoder.resolve("Lenina 44")

    key, payload = redis.set.await_args.args
    assert key.startswith("geo:")
    assert redis.set.await_args.kwargs == {"ex": 60}
    assert GeocodeResult(**json.loads(payload)) == result

    # Second lookup is served from the cache
    redis.get.return_value = payload
    assert await geocoder.resolve("Lenina 44") == result
    assert len(calls) == 1


async def test_geocoder_survives_cache_outage():
    redis = AsyncMock()
    redis.get.side_effect = RedisError("down")
    redis.set.side_effect = RedisError("down")
    geocoder = DaDataGeocoder(
        api_key="secret",
        http=_client(lambda request: httpx.Response(200, json=SUGGESTION)),
        redis=redis,
    )
    result = await geocoder.resolve("Lenina 44")
    assert result is not None
    assert result.region == "Челябинская"


async def test_router_returns_kilometres():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": "Ok", "routes": [{"distance": 4600.0}]})

    router = OsrmRouter("http://osrm.local/", http=_client(handler))
    km = await router.road_distance(55.16, 61.40, 55.17, 61.39)

    assert km == 4.6
    # OSRM takes lon,lat pairs
    assert seen[0].url.path == "/route/v1/driving/61.4,55.16;61.39,55.17"
    assert seen[0].url.params["overview"] == "false"


async def test_router_no_route_is_none():
    router = OsrmRouter(
        "http://osrm.local",
        http=_client(lambda request: httpx.Response(200, json={"code": "NoRoute", "routes": []})),
    )
    assert await router.road_distance(55.16, 61.40, 55.17, 61.39) is None


async def test_router_timeout_is_none():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    router = OsrmRouter("http://osrm.local", http=_client(handler))
    assert await router.road_distance(55.16, 61.40, 55.17, 61.39) is None
