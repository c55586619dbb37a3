"""
Delivery quote pipeline.

address → normalise → geocode → region check → route from anchor → price.
Gateway failures never propagate: an unresolved address yields UNRESOLVED
and a routing failure falls back to straight-line distance × road coefficient.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from api.schemas import QuoteStatus
from api.services.maps import DaDataGeocoder, OsrmRouter, get_geocoder, get_router
from api.services.pricing import (
    haversine_distance,
    load_tariffs,
    price_for_distance,
    routing_correction,
)

logger = logging.getLogger(__name__)

Point = tuple[float, float]

# Entrance / apartment tokens followed by a number; geocoders only resolve to the building
_ENTRANCE_RE = re.compile(
    r"[,\s]*\b(?:подъезд|подьезд|под\.?|п\.?|entrance|ent\.?)\s*\d+\b",
    re.IGNORECASE,
)
_APARTMENT_RE = re.compile(
    r"[,\s]*\b(?:квартира|кв\.?|к\.|apartment|apt\.?|flat)\s*\d+\w*",
    re.IGNORECASE,
)
_TRAILING_RE = re.compile(r"[,;\s]+$")
_REGION_SUFFIX_RE = re.compile(r"\s+(?:region|oblast|область|обл\.?)$", re.IGNORECASE)


def normalize_address(text: str) -> str:
    """Strip entrance and apartment parts: "Lenina 44, entrance 2, apt 15" → "Lenina 44"."""
    clean = _ENTRANCE_RE.sub("", text)
    clean = _APARTMENT_RE.sub("", clean)
    clean = _TRAILING_RE.sub("", clean).strip()
    if clean != text:
        logger.debug("Address normalised: %r → %r", text, clean)
    return clean


def _region_core(name: str) -> str:
    return _REGION_SUFFIX_RE.sub("", name.strip().lower()).strip()


def is_in_region(region: str, allowed: str) -> bool:
    """Case-insensitive containment in either direction, ignoring a trailing region suffix."""
    resolved = _region_core(region)
    expected = _region_core(allowed)
    return expected in resolved or resolved in expected


@dataclass
class Leg:
    distance_km: float
    price: int
    used_fallback: bool = False


@dataclass
class Quote:
    status: QuoteStatus
    normalized_address: str
    full_address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    region: str | None = None
    distance_km: float | None = None
    price: int | None = None
    used_fallback: bool = False

    @property
    def point(self) -> Point | None:
        if self.latitude is None or self.longitude is None:
            return None
        return self.latitude, self.longitude


class PricingPipeline:
    def __init__(
        self,
        geocoder: DaDataGeocoder,
        router: OsrmRouter,
        allowed_region: str,
        tariffs: list[tuple[float, int]] | None = None,
        road_coefficient: float = 1.6,
        correction_start_km: float = 5.0,
        correction_end_km: float = 12.0,
        correction_max: float = 1.24,
    ):
        self.geocoder = geocoder
        self.router = router
        self.allowed_region = allowed_region
        self.tariffs = tariffs
        self.road_coefficient = road_coefficient
        self.correction_start_km = correction_start_km
        self.correction_end_km = correction_end_km
        self.correction_max = correction_max

    @classmethod
    def from_settings(cls, settings, geocoder=None, router=None) -> "PricingPipeline":
        return cls(
            geocoder=geocoder or get_geocoder(),
            router=router or get_router(),
            allowed_region=settings.REGION_AREA,
            tariffs=load_tariffs(settings.TARIFFS),
            road_coefficient=settings.ROAD_DISTANCE_COEFFICIENT,
            correction_start_km=settings.ROUTING_CORRECTION_START_KM,
            correction_end_km=settings.ROUTING_CORRECTION_END_KM,
            correction_max=settings.ROUTING_CORRECTION_MAX,
        )

    async def quote(self, address: str, anchor: Point | None) -> Quote:
        normalized = normalize_address(address)
        geo = await self.geocoder.resolve(normalized)
        if geo is None:
            return Quote(status=QuoteStatus.UNRESOLVED, normalized_address=normalized)

        quote = Quote(
            status=QuoteStatus.OK,
            normalized_address=normalized,
            full_address=geo.full_address,
            latitude=geo.latitude,
            longitude=geo.longitude,
            region=geo.region,
        )

        if not is_in_region(geo.region, self.allowed_region):
            logger.info("Address %r resolved outside service region: %s", normalized, geo.region)
            quote.status = QuoteStatus.OUT_OF_ZONE
            return quote

        if anchor is None:
            quote.status = QuoteStatus.NO_ANCHOR
            return quote

        leg = await self.price_leg(anchor, (geo.latitude, geo.longitude))
        quote.distance_km = leg.distance_km
        quote.price = leg.price
        quote.used_fallback = leg.used_fallback
        return quote

    async def price_leg(self, anchor: Point, point: Point) -> Leg:
        used_fallback = False
        road_km = await self.router.road_distance(anchor[0], anchor[1], point[0], point[1])
        if road_km is not None:
            distance = road_km * routing_correction(
                road_km,
                start_km=self.correction_start_km,
                end_km=self.correction_end_km,
                max_factor=self.correction_max,
            )
        else:
            straight = haversine_distance(anchor[0], anchor[1], point[0], point[1])
            distance = straight * self.road_coefficient
            used_fallback = True
            logger.warning(
                "Routing unavailable, using straight line %.2f km × %.2f",
                straight, self.road_coefficient,
            )

        distance = round(distance, 1)
        return Leg(distance_km=distance, price=price_for_distance(distance, self.tariffs), used_fallback=used_fallback)

    async def reprice_chain(self, shop_anchor: Point | None, stops: Sequence, start: int = 0) -> int:
        """
        Reprice stops[start:] in place along the delivery chain.

        Stop 1 is anchored at the shop; every later stop at the previous stop,
        or the last stop that has coordinates. Stops that cannot be priced keep
        their current distance and price. Returns how many stops were repriced.
        """
        anchor = shop_anchor
        repriced = 0
        for index, stop in enumerate(stops):
            point = _stop_point(stop)
            if index >= start and point is not None and anchor is not None:
                leg = await self.price_leg(anchor, point)
                stop.distance_km = leg.distance_km
                stop.delivery_price = Decimal(leg.price)
                repriced += 1
            if point is not None:
                anchor = point
        return repriced


def _stop_point(stop) -> Point | None:
    if stop.latitude is None or stop.longitude is None:
        return None
    return float(stop.latitude), float(stop.longitude)
