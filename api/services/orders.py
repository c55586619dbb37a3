"""
Order lifecycle service.

Every state-changing operation is a conditional UPDATE on the expected prior
status, so concurrent requests race on the database row and exactly one wins.
Network calls (geocoding, routing) always happen before the row is touched.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from api.models.courier import Courier
from api.models.order import COURIER_ACTIVE_STATUSES, Order, OrderEvent, OrderStop
from api.models.shop import Shop
from api.models.user import User
from api.models.base import utcnow
from api.schemas import (
    CancelOutcome, ClaimOutcome, EditOutcome, OrderStatus, QuoteStatus, StopCreate,
)
from api.services.quote import PricingPipeline, Point

logger = logging.getLogger(__name__)

# target status → statuses it may be reached from
ADVANCE_TRANSITIONS: dict[OrderStatus, tuple[str, ...]] = {
    OrderStatus.PICKED_UP: ("ACCEPTED",),
    OrderStatus.DELIVERED: ("PICKED_UP",),
    OrderStatus.RETURNED: ("ACCEPTED", "PICKED_UP"),
}

_TIMESTAMP_FOR = {
    OrderStatus.ACCEPTED: "accepted_at",
    OrderStatus.PICKED_UP: "picked_up_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


@dataclass
class AddressEditResult:
    outcome: EditOutcome
    address_resolved: bool = False
    total_price: Decimal | None = None


@dataclass
class _StopSnapshot:
    latitude: float | None
    longitude: float | None
    distance_km: float | None
    delivery_price: Decimal


# ── Lookups ────────────────────────────────────────────────

async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order | None:
    # Status is changed by conditional UPDATEs; never trust an already-loaded copy
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_shop_by_telegram(db: AsyncSession, telegram_id: int) -> Shop | None:
    result = await db.execute(
        select(Shop).join(User, Shop.user_id == User.id).where(User.telegram_id == telegram_id)
    )
    return result.scalar_one_or_none()


async def get_courier_by_telegram(
    db: AsyncSession, telegram_id: int, for_update: bool = False,
) -> Courier | None:
    query = select(Courier).join(User, Courier.user_id == User.id).where(User.telegram_id == telegram_id)
    if for_update:
        query = query.with_for_update(of=Courier)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def list_available(db: AsyncSession) -> list[Order]:
    result = await db.execute(
        select(Order).where(Order.status == OrderStatus.NEW.value).order_by(Order.created_at.asc())
    )
    return list(result.scalars().all())


async def list_for_shop(db: AsyncSession, shop_id: uuid.UUID, limit: int = 20) -> list[Order]:
    result = await db.execute(
        select(Order).where(Order.shop_id == shop_id).order_by(Order.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def list_for_courier(db: AsyncSession, courier_id: uuid.UUID) -> list[Order]:
    result = await db.execute(
        select(Order)
        .where(Order.courier_id == courier_id, Order.status.in_(COURIER_ACTIVE_STATUSES))
        .order_by(Order.accepted_at.asc())
    )
    return list(result.scalars().all())


async def count_active_for_courier(db: AsyncSession, courier_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(Order.id)).where(
            Order.courier_id == courier_id,
            Order.status.in_(COURIER_ACTIVE_STATUSES),
        )
    )
    return result.scalar() or 0


# ── Creation ───────────────────────────────────────────────

async def create_order(
    db: AsyncSession, shop: Shop, delivery_date: date, stops: list[StopCreate],
) -> Order:
    """Persist a NEW order with its stops numbered 1..N in the given order."""
    order = Order(shop_id=shop.id, delivery_date=delivery_date, status=OrderStatus.NEW.value)
    order.stops = [
        OrderStop(
            stop_number=number,
            recipient_name=stop.recipient_name,
            recipient_phone=stop.recipient_phone,
            delivery_address=stop.delivery_address,
            latitude=stop.latitude,
            longitude=stop.longitude,
            distance_km=stop.distance_km,
            delivery_price=stop.delivery_price,
            comment=stop.comment,
        )
        for number, stop in enumerate(stops, start=1)
    ]
    order.recalculate_total()
    order.events = [OrderEvent(to_status=OrderStatus.NEW.value, actor_type="SHOP", actor_id=shop.id)]
    db.add(order)
    await db.commit()
    await db.refresh(order)
    logger.info("Order %s created by shop %s: %d stop(s), total %s", order.id, shop.id, len(stops), order.total_price)
    return order


async def ensure_shop_anchor(db: AsyncSession, pipeline: PricingPipeline, shop: Shop) -> Point | None:
    """Shop pickup coordinates, geocoded and saved on first use."""
    if shop.has_coordinates:
        return float(shop.latitude), float(shop.longitude)

    quote = await pipeline.quote(shop.pickup_address, anchor=None)
    if quote.point is None or quote.status == QuoteStatus.UNRESOLVED:
        logger.warning("Could not geocode pickup address of shop %s: %r", shop.id, shop.pickup_address)
        return None

    shop.latitude, shop.longitude = quote.point
    await db.commit()
    logger.info("Shop %s geocoded to %s", shop.id, quote.point)
    return quote.point


# ── Claim protocol ─────────────────────────────────────────

async def claim_order(
    db: AsyncSession, order_id: uuid.UUID, courier_telegram_id: int, max_active: int,
) -> ClaimOutcome:
    """
    Atomically bind a NEW order to a courier.

    The courier row is locked for the whole transaction so two claims by the
    same courier cannot both pass the cap check.
    """
    exists = await db.execute(select(Order.id).where(Order.id == order_id))
    if exists.scalar_one_or_none() is None:
        return ClaimOutcome.NOT_FOUND

    courier = await get_courier_by_telegram(db, courier_telegram_id, for_update=True)
    if courier is None:
        await db.rollback()
        return ClaimOutcome.COURIER_NOT_FOUND
    if not courier.is_active or courier.status != "ACTIVE":
        await db.rollback()
        return ClaimOutcome.COURIER_INACTIVE

    courier_id = courier.id
    active = await count_active_for_courier(db, courier_id)
    if active >= max_active:
        # Rollback expires loaded rows; only plain values are read past this point
        await db.rollback()
        logger.info("Courier %s at cap (%d/%d), claim of %s refused", courier_id, active, max_active, order_id)
        return ClaimOutcome.CAP_EXCEEDED

    now = utcnow()
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.NEW.value)
        .values(status=OrderStatus.ACCEPTED.value, courier_id=courier_id, accepted_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        return ClaimOutcome.UNAVAILABLE

    db.add(OrderEvent(
        order_id=order_id,
        from_status=OrderStatus.NEW.value,
        to_status=OrderStatus.ACCEPTED.value,
        actor_type="COURIER",
        actor_id=courier_id,
    ))
    await db.commit()
    logger.info("Order %s claimed by courier %s", order_id, courier_id)
    return ClaimOutcome.CLAIMED


async def cancel_order(
    db: AsyncSession, order_id: uuid.UUID, actor_id: uuid.UUID | None = None,
) -> CancelOutcome:
    now = utcnow()
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.NEW.value)
        .values(status=OrderStatus.CANCELLED.value, cancelled_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        if await get_order(db, order_id) is None:
            return CancelOutcome.NOT_FOUND
        return CancelOutcome.UNAVAILABLE

    db.add(OrderEvent(
        order_id=order_id,
        from_status=OrderStatus.NEW.value,
        to_status=OrderStatus.CANCELLED.value,
        actor_type="SHOP",
        actor_id=actor_id,
    ))
    await db.commit()
    logger.info("Order %s cancelled", order_id)
    return CancelOutcome.CANCELLED


async def advance_order(
    db: AsyncSession, order_id: uuid.UUID, courier_telegram_id: int, target: OrderStatus,
) -> bool:
    """Move a courier's order forward; False when the transition is not allowed now."""
    allowed_from = ADVANCE_TRANSITIONS.get(target)
    if allowed_from is None:
        return False

    courier = await get_courier_by_telegram(db, courier_telegram_id)
    if courier is None:
        return False

    current = await db.execute(select(Order.status).where(Order.id == order_id))
    from_status = current.scalar_one_or_none()

    now = utcnow()
    values = {"status": target.value, "updated_at": now}
    if target in _TIMESTAMP_FOR:
        values[_TIMESTAMP_FOR[target]] = now

    result = await db.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.courier_id == courier.id,
            Order.status.in_(allowed_from),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        return False

    db.add(OrderEvent(
        order_id=order_id,
        from_status=from_status,
        to_status=target.value,
        actor_type="COURIER",
        actor_id=courier.id,
    ))
    await db.commit()
    logger.info("Order %s → %s by courier %s", order_id, target.value, courier.id)
    return True


async def mark_stop_delivered(
    db: AsyncSession, order_id: uuid.UUID, stop_number: int, courier_telegram_id: int,
) -> Order | None:
    """Mark one stop delivered; the order becomes DELIVERED once every stop is."""
    courier = await get_courier_by_telegram(db, courier_telegram_id)
    order = await get_order(db, order_id)
    if courier is None or order is None or order.courier_id != courier.id:
        return None
    if order.status != OrderStatus.PICKED_UP.value:
        return None

    stop = order.get_stop(stop_number)
    if stop is None:
        return None

    if stop.stop_status != "DELIVERED":
        stop.stop_status = "DELIVERED"
        stop.delivered_at = utcnow()
        logger.info("Stop #%d of order %s delivered", stop_number, order_id)

    if all(s.stop_status == "DELIVERED" for s in order.stops):
        await db.commit()
        await advance_order(db, order_id, courier_telegram_id, OrderStatus.DELIVERED)
        await db.refresh(order)
        return order

    await db.commit()
    return order


# ── Edits (NEW orders only) ────────────────────────────────

async def _gate_new(db: AsyncSession, order_id: uuid.UUID) -> bool:
    """Touch the order row only if it is still NEW; holds the row until commit."""
    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == OrderStatus.NEW.value)
        .values(updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def _load_editable(db: AsyncSession, order_id: uuid.UUID) -> tuple[Order | None, EditOutcome | None]:
    order = await get_order(db, order_id)
    if order is None:
        return None, EditOutcome.NOT_FOUND
    if order.status != OrderStatus.NEW.value:
        return order, EditOutcome.NOT_EDITABLE
    return order, None


async def update_stop_address(
    db: AsyncSession,
    pipeline: PricingPipeline,
    order_id: uuid.UUID,
    stop_number: int,
    address: str,
) -> AddressEditResult:
    order, rejected = await _load_editable(db, order_id)
    if rejected:
        return AddressEditResult(outcome=rejected)
    stop = order.get_stop(stop_number)
    if stop is None:
        return AddressEditResult(outcome=EditOutcome.NOT_FOUND)

    quote = await pipeline.quote(address, anchor=None)
    resolved = quote.status in (QuoteStatus.NO_ANCHOR, QuoteStatus.OK)

    snapshots = [
        _StopSnapshot(s.latitude, s.longitude, s.distance_km, s.delivery_price)
        for s in order.stops
    ]
    index = order.stops.index(stop)
    if resolved:
        snapshots[index].latitude, snapshots[index].longitude = quote.point
        shop_anchor = await ensure_shop_anchor(db, pipeline, order.shop)
        await pipeline.reprice_chain(shop_anchor, snapshots, start=index)
    else:
        logger.info("Address %r for order %s unresolved (%s), updating text only", address, order_id, quote.status.value)

    if not await _gate_new(db, order_id):
        await db.rollback()
        return AddressEditResult(outcome=EditOutcome.NOT_EDITABLE)

    stop.delivery_address = address
    for target, snap in zip(order.stops, snapshots):
        target.latitude = snap.latitude
        target.longitude = snap.longitude
        target.distance_km = snap.distance_km
        target.delivery_price = snap.delivery_price
    order.recalculate_total()
    await db.commit()
    logger.info("Order %s stop #%d address updated, total now %s", order_id, stop_number, order.total_price)
    return AddressEditResult(outcome=EditOutcome.UPDATED, address_resolved=resolved, total_price=order.total_price)


async def _update_stop_field(
    db: AsyncSession, order_id: uuid.UUID, stop_number: int, field: str, value: str | None,
) -> EditOutcome:
    order, rejected = await _load_editable(db, order_id)
    if rejected:
        return rejected
    stop = order.get_stop(stop_number)
    if stop is None:
        return EditOutcome.NOT_FOUND
    if not await _gate_new(db, order_id):
        await db.rollback()
        return EditOutcome.NOT_EDITABLE

    setattr(stop, field, value)
    await db.commit()
    logger.info("Order %s stop #%d %s updated", order_id, stop_number, field)
    return EditOutcome.UPDATED


async def update_stop_phone(
    db: AsyncSession, order_id: uuid.UUID, stop_number: int, phone: str,
) -> EditOutcome:
    return await _update_stop_field(db, order_id, stop_number, "recipient_phone", phone)


async def update_stop_comment(
    db: AsyncSession, order_id: uuid.UUID, stop_number: int, comment: str | None,
) -> EditOutcome:
    return await _update_stop_field(db, order_id, stop_number, "comment", comment or None)


async def update_delivery_date(db: AsyncSession, order_id: uuid.UUID, delivery_date: date) -> EditOutcome:
    order, rejected = await _load_editable(db, order_id)
    if rejected:
        return rejected
    if not await _gate_new(db, order_id):
        await db.rollback()
        return EditOutcome.NOT_EDITABLE

    order.delivery_date = delivery_date
    await db.commit()
    logger.info("Order %s delivery date → %s", order_id, delivery_date)
    return EditOutcome.UPDATED
