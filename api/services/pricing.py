"""
Pricing Engine — distance-ladder tariffs for flower deliveries.

Price model:
  1. Tariff ladder: each breakpoint (km → price) covers every distance up to it
  2. Beyond the last breakpoint: +100 per started 3 km
  3. Routed distances get a distance-dependent correction factor
  4. The first breakpoint's price is the floor for manually entered prices
"""

import logging
import math
from collections.abc import Mapping

logger = logging.getLogger(__name__)


# ── Constants ──────────────────────────────────────────────

EARTH_RADIUS_KM = 6371.0

DEFAULT_TARIFFS: list[tuple[float, int]] = [
    (3, 300),
    (5, 400),
    (7, 500),
    (9, 700),
    (11, 850),
    (13, 1000),
    (15, 1150),
    (17, 1300),
    (19, 1450),
    (21, 1550),
    (23, 1650),
    (25, 1750),
    (27, 1850),
    (30, 2000),
]

EXTRA_BLOCK_KM = 3
EXTRA_BLOCK_PRICE = 100


# ── Tariff ladder ──────────────────────────────────────────

def load_tariffs(raw: str | Mapping | None) -> list[tuple[float, int]]:
    """
    Parse a tariff ladder from configuration.

    Accepts "3=300,5=400,..." or a {km: price} mapping. Anything empty or
    unparsable falls back to DEFAULT_TARIFFS.
    """
    if not raw:
        return list(DEFAULT_TARIFFS)

    try:
        if isinstance(raw, Mapping):
            pairs = [(float(km), int(price)) for km, price in raw.items()]
        else:
            pairs = []
            for chunk in raw.split(","):
                chunk = chunk.strip()
                if not chunk:
                    continue
                km, price = chunk.split("=", 1)
                pairs.append((float(km), int(price)))
    except (ValueError, TypeError) as e:
        logger.warning("Invalid tariff ladder %r (%s), using defaults", raw, e)
        return list(DEFAULT_TARIFFS)

    if not pairs or any(km <= 0 or price <= 0 for km, price in pairs):
        logger.warning("Empty or non-positive tariff ladder %r, using defaults", raw)
        return list(DEFAULT_TARIFFS)

    return sorted(pairs)


def price_for_distance(distance_km: float, tariffs: list[tuple[float, int]] | None = None) -> int:
    """Price of the smallest breakpoint covering the distance, extended past the last one."""
    ladder = tariffs or DEFAULT_TARIFFS
    for max_km, price in ladder:
        if distance_km <= max_km:
            return price

    last_km, last_price = ladder[-1]
    extra_km = math.ceil(distance_km - last_km)
    blocks = math.ceil(extra_km / EXTRA_BLOCK_KM)
    return last_price + blocks * EXTRA_BLOCK_PRICE


def min_price(tariffs: list[tuple[float, int]] | None = None) -> int:
    """Floor for manually entered stop prices."""
    ladder = tariffs or DEFAULT_TARIFFS
    return ladder[0][1]


def tariff_description(tariffs: list[tuple[float, int]] | None = None) -> str:
    ladder = tariffs or DEFAULT_TARIFFS
    lines = []
    lower = 0.0
    for max_km, price in ladder:
        lines.append(f"• {_fmt_km(lower)}–{_fmt_km(max_km)} km — {price} ₽")
        lower = max_km
    lines.append(f"• over {_fmt_km(lower)} km — +{EXTRA_BLOCK_PRICE} ₽ per {EXTRA_BLOCK_KM} km")
    return "\n".join(lines)


def _fmt_km(km: float) -> str:
    return str(int(km)) if float(km).is_integer() else f"{km:.1f}"


# ── Distance ───────────────────────────────────────────────

def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Straight-line distance in km (no road factor applied)."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def routing_correction(
    distance_km: float,
    start_km: float = 5.0,
    end_km: float = 12.0,
    max_factor: float = 1.24,
) -> float:
    """
    Correction applied to routed road distances.

    1.0 up to start_km, linear ramp to max_factor at end_km, flat after.
    """
    if distance_km <= start_km:
        return 1.0
    if distance_km >= end_km:
        return max_factor
    ratio = (distance_km - start_km) / (end_km - start_km)
    return 1.0 + (max_factor - 1.0) * ratio
