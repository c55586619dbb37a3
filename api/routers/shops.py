"""Shop registration API endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.db.database import get_db
from api.models.shop import Shop
from api.models.user import User
from api.schemas import ShopCreate, ShopResponse
from api.services.orders import get_shop_by_telegram

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=ShopResponse)
async def register_shop(data: ShopCreate, db: AsyncSession = Depends(get_db)):
    """Register a shop for a Telegram user. Shops start inactive until an admin approves them."""
    result = await db.execute(select(User).where(User.telegram_id == data.telegram_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.shop is not None:
        raise HTTPException(status_code=409, detail="Shop already registered")

    shop = Shop(
        user_id=user.id,
        shop_name=data.shop_name,
        pickup_address=data.pickup_address,
        phone=data.phone,
        is_active=False,
    )
    user.role = "SHOP"
    user.phone = user.phone or data.phone
    db.add(shop)
    await db.commit()
    await db.refresh(shop)
    logger.info("Shop registered: %s (telegram_id=%s), awaiting activation", shop.shop_name, data.telegram_id)
    return shop


@router.get("/telegram/{telegram_id}", response_model=ShopResponse)
async def get_shop_by_telegram_id(telegram_id: int, db: AsyncSession = Depends(get_db)):
    """Get shop by its owner's Telegram ID."""
    shop = await get_shop_by_telegram(db, telegram_id)
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not found")
    return shop
