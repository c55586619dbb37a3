"""Tests for address normalisation, the region check and the quote pipeline."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from api.schemas import QuoteStatus
from api.services.pricing import haversine_distance
from api.services.quote import PricingPipeline, is_in_region, normalize_address
from conftest import FakeGeocoder, FakeRouter, SHOP_POINT, geo

REGION = "Челябинская область"


@pytest.mark.parametrize("raw, expected", [
    ("Lenina 44, entrance 2, apt 15", "Lenina 44"),
    ("Lenina 44, apt 15", "Lenina 44"),
    ("ул. Ленина 44, подъезд 2, кв. 15", "ул. Ленина 44"),
    ("Ленина 44 кв 7", "Ленина 44"),
    ("Kirova 10", "Kirova 10"),
])
def test_normalize_address(raw, expected):
    assert normalize_address(raw) == expected


@pytest.mark.parametrize("region, inside", [
    ("Челябинская", True),
    ("Челябинская обл", True),
    ("челябинская область", True),
    ("Chelyabinsk region", False),
    ("Свердловская", False),
    ("", True),
])
def test_is_in_region(region, inside):
    assert is_in_region(region, REGION) is inside


def test_is_in_region_suffix_on_allowed_side():
    assert is_in_region("Chelyabinsk Oblast", "chelyabinsk region")


def _pipeline(geocoder, router, **kwargs) -> PricingPipeline:
    return PricingPipeline(geocoder=geocoder, router=router, allowed_region=REGION, **kwargs)


async def test_quote_unresolved():
    pipeline = _pipeline(FakeGeocoder(), FakeRouter(default=4.0))
    quote = await pipeline.quote("Nowhere street 1, apt 4", SHOP_POINT)

    assert quote.status == QuoteStatus.UNRESOLVED
    assert quote.normalized_address == "Nowhere street 1"
    assert quote.price is None


async def test_quote_geocodes_normalised_address():
    geocoder = FakeGeocoder({"Lenina 44": geo(55.17, 61.39)})
    pipeline = _pipeline(geocoder, FakeRouter(default=4.6))

    await pipeline.quote("Lenina 44, entrance 2, apt 15", SHOP_POINT)
    assert geocoder.calls == ["Lenina 44"]


async def test_quote_out_of_zone_reports_region():
    geocoder = FakeGeocoder({"Ekaterinburg, Lenina 1": geo(56.83, 60.60, region="Свердловская")})
    router = FakeRouter(default=200.0)
    pipeline = _pipeline(geocoder, router)

    quote = await pipeline.quote("Ekaterinburg, Lenina 1", SHOP_POINT)
    assert quote.status == QuoteStatus.OUT_OF_ZONE
    assert quote.region == "Свердловская"
    assert quote.price is None
    assert router.calls == []


async def test_quote_without_anchor():
    geocoder = FakeGeocoder({"Lenina 44": geo(55.17, 61.39)})
    quote = await _pipeline(geocoder, FakeRouter(default=4.0)).quote("Lenina 44", None)

    assert quote.status == QuoteStatus.NO_ANCHOR
    assert quote.point == (55.17, 61.39)
    assert quote.price is None


async def test_quote_ok_uses_routed_distance():
    geocoder = FakeGeocoder({"Lenina 44": geo(55.17, 61.39)})
    pipeline = _pipeline(geocoder, FakeRouter(default=4.6))

    quote = await pipeline.quote("Lenina 44", SHOP_POINT)
    assert quote.status == QuoteStatus.OK
    assert quote.distance_km == 4.6
    assert quote.price == 400
    assert quote.used_fallback is False


async def test_quote_applies_routing_correction():
    """12 km by road gets the full 1.24 factor: 14.88 → 14.9 km."""
    geocoder = FakeGeocoder({"Lenina 44": geo(55.17, 61.39)})
    quote = await _pipeline(geocoder, FakeRouter(default=12.0)).quote("Lenina 44", SHOP_POINT)

    assert quote.distance_km == 14.9
    assert quote.price == 1150


async def test_quote_falls_back_to_straight_line():
    point = (55.20, 61.45)
    geocoder = FakeGeocoder({"Lenina 44": geo(*point)})
    quote = await _pipeline(geocoder, FakeRouter(default=None)).quote("Lenina 44", SHOP_POINT)

    expected = round(haversine_distance(*SHOP_POINT, *point) * 1.6, 1)
    assert quote.status == QuoteStatus.OK
    assert quote.used_fallback is True
    assert quote.distance_km == expected


async def test_quote_uses_configured_tariffs():
    geocoder = FakeGeocoder({"Lenina 44": geo(55.17, 61.39)})
    pipeline = _pipeline(geocoder, FakeRouter(default=2.0), tariffs=[(10, 999)])

    quote = await pipeline.quote("Lenina 44", SHOP_POINT)
    assert quote.price == 999


def _stop(point=None, price=300):
    lat, lng = point if point else (None, None)
    return SimpleNamespace(latitude=lat, longitude=lng, distance_km=None, delivery_price=Decimal(price))


async def test_reprice_chain_anchors_each_stop_on_the_previous():
    a, b, c = (55.17, 61.39), (55.18, 61.38), (55.19, 61.37)
    router = FakeRouter({a: 2.0, b: 4.0, c: 6.0})
    stops = [_stop(a), _stop(b), _stop(c)]

    repriced = await _pipeline(FakeGeocoder(), router).reprice_chain(SHOP_POINT, stops)

    assert repriced == 3
    assert [origin for origin, _ in router.calls] == [SHOP_POINT, a, b]
    assert [s.delivery_price for s in stops] == [Decimal(300), Decimal(400), Decimal(500)]


async def test_reprice_chain_from_middle_keeps_earlier_stops():
    a, b, c = (55.17, 61.39), (55.18, 61.38), (55.19, 61.37)
    router = FakeRouter({b: 4.0, c: 8.0})
    stops = [_stop(a, price=777), _stop(b), _stop(c)]

    repriced = await _pipeline(FakeGeocoder(), router).reprice_chain(SHOP_POINT, stops, start=1)

    assert repriced == 2
    assert stops[0].delivery_price == Decimal(777)
    assert router.calls[0] == (a, b)
    assert router.calls[1] == (b, c)


async def test_reprice_chain_skips_stops_without_coordinates():
    """A stop with no point keeps its price and the next one anchors on the last known point."""
    a, c = (55.17, 61.39), (55.19, 61.37)
    router = FakeRouter({a: 2.0, c: 4.0})
    stops = [_stop(a), _stop(None, price=650), _stop(c)]

    repriced = await _pipeline(FakeGeocoder(), router).reprice_chain(SHOP_POINT, stops)

    assert repriced == 2
    assert stops[1].delivery_price == Decimal(650)
    assert router.calls[1] == (a, c)


async def test_reprice_chain_without_shop_anchor_leaves_first_stop():
    a, b = (55.17, 61.39), (55.18, 61.38)
    stops = [_stop(a, price=500), _stop(b, price=999)]

    repriced = await _pipeline(FakeGeocoder(), FakeRouter(default=2.0)).reprice_chain(None, stops)

    assert repriced == 1
    assert stops[0].delivery_price == Decimal(500)
    assert stops[1].delivery_price == Decimal(300)
