"""User management API endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.db.database import get_db
from api.models.user import User
from api.schemas import UserCreate, UserResponse, UserRoleUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=UserResponse)
async def create_or_get_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Create a new user or return existing one (by telegram_id)."""
    result = await db.execute(
        select(User).where(User.telegram_id == data.telegram_id)
    )
    existing = result.scalar_one_or_none()

    if existing:
        return existing

    user = User(
        telegram_id=data.telegram_id,
        full_name=data.full_name,
        phone=data.phone,
        telegram_username=data.telegram_username,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User created: telegram_id=%s", data.telegram_id)
    return user


@router.get("/{telegram_id}", response_model=UserResponse)
async def get_user_by_telegram(telegram_id: int, db: AsyncSession = Depends(get_db)):
    """Get user by Telegram ID."""
    result = await db.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/{telegram_id}/role", response_model=UserResponse)
async def set_user_role(telegram_id: int, data: UserRoleUpdate, db: AsyncSession = Depends(get_db)):
    """Tag the user as a shop or a courier. The only authorization concept in the system."""
    result = await db.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    user.role = data.role.value
    await db.commit()
    await db.refresh(user)
    logger.info("User %s role set to %s", telegram_id, data.role.value)
    return user
