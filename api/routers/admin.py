"""Admin API endpoints — activation toggles for shops and couriers."""

import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.db.database import get_db
from api.models.courier import Courier
from api.models.shop import Shop
from api.schemas import CourierResponse, ShopResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.patch("/shops/{shop_id}/activate", response_model=ShopResponse)
async def activate_shop(shop_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Allow a shop to create orders."""
    shop = (await db.execute(select(Shop).where(Shop.id == shop_id))).scalar_one_or_none()
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not found")

    shop.is_active = True
    await db.commit()
    await db.refresh(shop)
    logger.info("Shop %s activated", shop_id)
    return shop


@router.patch("/couriers/{courier_id}/activate", response_model=CourierResponse)
async def activate_courier(courier_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Approve a courier so they can claim orders."""
    courier = (await db.execute(select(Courier).where(Courier.id == courier_id))).scalar_one_or_none()
    if not courier:
        raise HTTPException(status_code=404, detail="Courier not found")

    courier.status = "ACTIVE"
    courier.is_active = True
    await db.commit()
    await db.refresh(courier)
    logger.info("Courier %s activated", courier_id)
    return courier


@router.patch("/couriers/{courier_id}/block", response_model=CourierResponse)
async def block_courier(courier_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    courier = (await db.execute(select(Courier).where(Courier.id == courier_id))).scalar_one_or_none()
    if not courier:
        raise HTTPException(status_code=404, detail="Courier not found")

    courier.status = "BLOCKED"
    courier.is_active = False
    await db.commit()
    await db.refresh(courier)
    logger.warning("Courier %s blocked", courier_id)
    return courier
