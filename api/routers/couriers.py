"""Courier registration API endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.db.database import get_db
from api.models.courier import Courier
from api.models.user import User
from api.schemas import CourierCreate, CourierResponse
from api.services.orders import get_courier_by_telegram

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=CourierResponse)
async def register_courier(data: CourierCreate, db: AsyncSession = Depends(get_db)):
    """Courier self-registration. New couriers are PENDING until an admin activates them."""
    result = await db.execute(select(User).where(User.telegram_id == data.telegram_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.courier is not None:
        raise HTTPException(status_code=409, detail="Courier already registered")

    courier = Courier(
        user_id=user.id,
        full_name=data.full_name,
        phone=data.phone,
        passport_photo_file_id=data.passport_photo_file_id,
        status="PENDING",
        is_active=False,
    )
    user.role = "COURIER"
    user.phone = user.phone or data.phone
    db.add(courier)
    await db.commit()
    await db.refresh(courier)
    logger.info("Courier registered: %s (telegram_id=%s), status PENDING", courier.full_name, data.telegram_id)
    return courier


@router.get("/telegram/{telegram_id}", response_model=CourierResponse)
async def get_courier_by_telegram_id(telegram_id: int, db: AsyncSession = Depends(get_db)):
    """Get courier by Telegram ID."""
    courier = await get_courier_by_telegram(db, telegram_id)
    if not courier:
        raise HTTPException(status_code=404, detail="Courier not found")
    return courier
