"""Delivery pricing API endpoints — tariff ladder and address quotes."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.config import settings
from api.db.database import get_db
from api.models.shop import Shop
from api.schemas import QuoteRequest, QuoteResponse, TariffsResponse, TariffStep
from api.services.orders import ensure_shop_anchor
from api.services.pricing import load_tariffs, min_price, tariff_description
from api.services.quote import PricingPipeline

router = APIRouter()
logger = logging.getLogger(__name__)


def get_pipeline() -> PricingPipeline:
    return PricingPipeline.from_settings(settings)


@router.get("/tariffs", response_model=TariffsResponse)
async def get_tariffs():
    """Configured tariff ladder, with the manual-entry price floor."""
    ladder = load_tariffs(settings.TARIFFS)
    return TariffsResponse(
        tariffs=[TariffStep(max_km=km, price=price) for km, price in ladder],
        min_price=min_price(ladder),
        description=tariff_description(ladder),
    )


@router.post("/quote", response_model=QuoteResponse)
async def quote_address(
    data: QuoteRequest,
    db: AsyncSession = Depends(get_db),
    pipeline: PricingPipeline = Depends(get_pipeline),
):
    """
    Resolve an address and suggest a price.

    Anchor is the explicit point if given, otherwise the shop's pickup point
    (geocoded on first use). Without either the quote comes back NO_ANCHOR.
    """
    anchor = None
    if data.anchor_lat is not None and data.anchor_lng is not None:
        anchor = (data.anchor_lat, data.anchor_lng)
    elif data.shop_id is not None:
        result = await db.execute(select(Shop).where(Shop.id == data.shop_id))
        shop = result.scalar_one_or_none()
        if not shop:
            raise HTTPException(status_code=404, detail="Shop not found")
        anchor = await ensure_shop_anchor(db, pipeline, shop)

    quote = await pipeline.quote(data.address, anchor)
    logger.info("Quote for %r: %s %s km %s", data.address, quote.status.value, quote.distance_km, quote.price)
    return QuoteResponse(
        status=quote.status,
        normalized_address=quote.normalized_address,
        full_address=quote.full_address,
        latitude=quote.latitude,
        longitude=quote.longitude,
        region=quote.region,
        distance_km=quote.distance_km,
        price=quote.price,
        used_fallback=quote.used_fallback,
    )
