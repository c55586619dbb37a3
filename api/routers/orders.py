"""Order management API endpoints."""

import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.config import settings
from api.db.database import get_db
from api.routers.pricing import get_pipeline
from api.schemas import (
    AdvanceRequest, AdvanceResponse, CancelResponse, ClaimRequest, ClaimResponse,
    DateUpdate, EditOutcome, EditResponse, OrderCreate, OrderResponse, OrderStatus,
    StopUpdate,
)
from api.services import orders as order_service
from api.services.quote import PricingPipeline

router = APIRouter()
logger = logging.getLogger(__name__)


# ── Creation & lookups ─────────────────────────────────────

@router.post("/", response_model=OrderResponse)
async def create_order(data: OrderCreate, db: AsyncSession = Depends(get_db)):
    """Create a NEW order with one or more stops."""
    shop = await order_service.get_shop_by_telegram(db, data.shop_telegram_id)
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not registered")
    if not shop.is_active:
        raise HTTPException(status_code=403, detail="Shop is not active yet")

    return await order_service.create_order(db, shop, data.delivery_date, data.stops)


@router.get("/available", response_model=list[OrderResponse])
async def list_available_orders(db: AsyncSession = Depends(get_db)):
    """NEW orders waiting for a courier, oldest first."""
    return await order_service.list_available(db)


@router.get("/shop/{telegram_id}", response_model=list[OrderResponse])
async def list_shop_orders(telegram_id: int, limit: int = 20, db: AsyncSession = Depends(get_db)):
    """Most recent orders of a shop."""
    shop = await order_service.get_shop_by_telegram(db, telegram_id)
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not found")
    return await order_service.list_for_shop(db, shop.id, limit=limit)


@router.get("/courier/{telegram_id}", response_model=list[OrderResponse])
async def list_courier_orders(telegram_id: int, db: AsyncSession = Depends(get_db)):
    """Orders a courier is currently carrying (ACCEPTED or PICKED_UP)."""
    courier = await order_service.get_courier_by_telegram(db, telegram_id)
    if not courier:
        raise HTTPException(status_code=404, detail="Courier not found")
    return await order_service.list_for_courier(db, courier.id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Get order with its stops."""
    order = await order_service.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# ── Lifecycle ──────────────────────────────────────────────

@router.post("/{order_id}/claim", response_model=ClaimResponse)
async def claim_order(order_id: uuid.UUID, data: ClaimRequest, db: AsyncSession = Depends(get_db)):
    """Courier takes a NEW order. Exactly one concurrent claim wins."""
    outcome = await order_service.claim_order(
        db, order_id, data.courier_telegram_id, settings.COURIER_MAX_ACTIVE_ORDERS,
    )
    return ClaimResponse(outcome=outcome)


@router.post("/{order_id}/cancel", response_model=CancelResponse)
async def cancel_order(order_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Shop cancels an order that no courier has taken yet."""
    outcome = await order_service.cancel_order(db, order_id)
    return CancelResponse(outcome=outcome)


@router.post("/{order_id}/advance", response_model=AdvanceResponse)
async def advance_order(order_id: uuid.UUID, data: AdvanceRequest, db: AsyncSession = Depends(get_db)):
    """Courier moves an order to PICKED_UP, DELIVERED or RETURNED."""
    updated = await order_service.advance_order(db, order_id, data.courier_telegram_id, data.target)
    return AdvanceResponse(updated=updated, status=data.target if updated else None)


@router.post("/{order_id}/stops/{stop_number}/delivered", response_model=OrderResponse)
async def mark_stop_delivered(
    order_id: uuid.UUID, stop_number: int, data: ClaimRequest, db: AsyncSession = Depends(get_db),
):
    """Courier marks one stop delivered; the last one completes the order."""
    order = await order_service.mark_stop_delivered(db, order_id, stop_number, data.courier_telegram_id)
    if not order:
        raise HTTPException(status_code=409, detail="Stop cannot be marked delivered now")
    return order


# ── Edits (NEW only) ───────────────────────────────────────

@router.patch("/{order_id}/stops/{stop_number}", response_model=EditResponse)
async def update_stop(
    order_id: uuid.UUID,
    stop_number: int,
    data: StopUpdate,
    db: AsyncSession = Depends(get_db),
    pipeline: PricingPipeline = Depends(get_pipeline),
):
    """Edit one field of a stop. Address edits re-price this stop and every later one."""
    if data.delivery_address is not None:
        result = await order_service.update_stop_address(
            db, pipeline, order_id, stop_number, data.delivery_address,
        )
        return EditResponse(
            outcome=result.outcome,
            address_resolved=result.address_resolved if result.outcome == EditOutcome.UPDATED else None,
            total_price=result.total_price,
        )

    if data.recipient_phone is not None:
        outcome = await order_service.update_stop_phone(db, order_id, stop_number, data.recipient_phone)
    elif data.comment is not None or data.clear_comment:
        comment = None if data.clear_comment else data.comment
        outcome = await order_service.update_stop_comment(db, order_id, stop_number, comment)
    else:
        raise HTTPException(status_code=422, detail="Nothing to update")
    return EditResponse(outcome=outcome)


@router.patch("/{order_id}/date", response_model=EditResponse)
async def update_delivery_date(order_id: uuid.UUID, data: DateUpdate, db: AsyncSession = Depends(get_db)):
    """Move a NEW order to another delivery date."""
    outcome = await order_service.update_delivery_date(db, order_id, data.delivery_date)
    return EditResponse(outcome=outcome)
