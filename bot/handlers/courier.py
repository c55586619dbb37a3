"""
Courier actions: browse NEW orders, claim one, and drive it to completion.

Claim → Picked up → Delivered per stop (last stop completes the order)
Any active order can instead be returned to the shop.
"""

import logging

from aiogram import F, Router
from aiogram.types import CallbackQuery

from bot.api_client import ApiClient
from bot.flows.order_selection import format_order
from bot.keyboards.courier_kb import (
    ADVANCE_PREFIX, CLAIM_PREFIX, COURIER_AVAILABLE, COURIER_MY_ORDERS, STOP_DONE_PREFIX,
    active_order_keyboard, claim_keyboard,
)

router = Router()
logger = logging.getLogger(__name__)

MAX_LISTED = 10

CLAIM_MESSAGES = {
    "UNAVAILABLE": "😔 Another courier already took this order.",
    "NOT_FOUND": "❌ This order no longer exists.",
    "COURIER_NOT_FOUND": "❌ Register as a courier first: /start",
    "COURIER_INACTIVE": "⏳ Your account isn't activated yet.",
    "CAP_EXCEEDED": "🚫 You already carry the maximum number of orders. Finish one first.",
}


async def _require_active_courier(callback: CallbackQuery, api: ApiClient) -> dict | None:
    courier = await api.get_courier(callback.from_user.id)
    if not courier:
        await callback.answer("Register as a courier first: /start", show_alert=True)
        return None
    if not courier.get("is_active"):
        await callback.answer("⏳ Your account isn't activated yet.", show_alert=True)
        return None
    return courier


@router.callback_query(F.data == COURIER_AVAILABLE)
async def available_orders(callback: CallbackQuery, api: ApiClient):
    if not await _require_active_courier(callback, api):
        return
    await callback.answer()

    orders = await api.list_available_orders()
    if orders is None:
        await callback.message.answer("⚠️ Couldn't load orders right now. Try again later.")
        return
    if not orders:
        await callback.message.answer("📭 No orders waiting right now.")
        return

    for order in orders[:MAX_LISTED]:
        await callback.message.answer(format_order(order), reply_markup=claim_keyboard(order["id"]))


@router.callback_query(F.data.startswith(CLAIM_PREFIX))
async def claim_order(callback: CallbackQuery, api: ApiClient):
    order_id = callback.data.removeprefix(CLAIM_PREFIX)
    outcome = await api.claim_order(order_id, callback.from_user.id)
    if outcome is None:
        await callback.answer("⚠️ Service unavailable, try again later.", show_alert=True)
        return

    logger.info("Courier %s claim of order %s: %s", callback.from_user.id, order_id, outcome)
    if outcome != "CLAIMED":
        await callback.answer(CLAIM_MESSAGES.get(outcome, "⚠️ Couldn't take this order."), show_alert=True)
        return

    await callback.answer("✅ The order is yours!")
    order = await api.get_order(order_id)
    if order:
        await callback.message.answer(
            f"✅ <b>Order taken!</b>\n\n{format_order(order)}",
            reply_markup=active_order_keyboard(order),
        )


@router.callback_query(F.data == COURIER_MY_ORDERS)
async def my_active_orders(callback: CallbackQuery, api: ApiClient):
    await callback.answer()
    orders = await api.list_courier_orders(callback.from_user.id)
    if orders is None:
        await callback.message.answer("⚠️ Couldn't load your orders right now.")
        return
    if not orders:
        await callback.message.answer("📭 You have no active orders.")
        return
    for order in orders:
        await callback.message.answer(format_order(order), reply_markup=active_order_keyboard(order))


@router.callback_query(F.data.startswith(ADVANCE_PREFIX))
async def advance_order(callback: CallbackQuery, api: ApiClient):
    order_id, _, target = callback.data.removeprefix(ADVANCE_PREFIX).rpartition(":")
    updated = await api.advance_order(order_id, callback.from_user.id, target)
    if updated is None:
        await callback.answer("⚠️ Service unavailable, try again later.", show_alert=True)
        return
    if not updated:
        await callback.answer("⛔ This order's status can't be changed now.", show_alert=True)
        return

    await callback.answer("✅ Status updated")
    if target == "RETURNED":
        await callback.message.answer("↩️ Order marked as returned to the shop.")
        return
    order = await api.get_order(order_id)
    if order:
        await callback.message.answer(format_order(order), reply_markup=active_order_keyboard(order))


@router.callback_query(F.data.startswith(STOP_DONE_PREFIX))
async def stop_delivered(callback: CallbackQuery, api: ApiClient):
    order_id, _, stop_number = callback.data.removeprefix(STOP_DONE_PREFIX).rpartition(":")
    if not stop_number.isdigit():
        await callback.answer()
        return

    order = await api.mark_stop_delivered(order_id, int(stop_number), callback.from_user.id)
    if order is None:
        await callback.answer("⛔ This stop can't be marked delivered now.", show_alert=True)
        return

    await callback.answer(f"✅ Stop {stop_number} delivered")
    if order.get("status") == "DELIVERED":
        await callback.message.answer("🎉 <b>All stops delivered!</b> Order complete, thank you!")
    else:
        await callback.message.answer(format_order(order), reply_markup=active_order_keyboard(order))
