"""Shop menu actions: new order, my orders, edit and cancel."""

import logging

from aiogram import F, Router
from aiogram.types import CallbackQuery

from bot.api_client import ApiClient
from bot.dispatcher import FlowDispatcher
from bot.flows.order_selection import CANCEL_PREFIX, EDIT_PREFIX
from bot.keyboards.common import send_replies
from bot.keyboards.shop_kb import SHOP_MY_ORDERS, SHOP_NEW_ORDER
from bot.states.base import FlowType

router = Router()
logger = logging.getLogger(__name__)

CANCEL_MESSAGES = {
    "CANCELLED": "✅ Order cancelled.",
    "UNAVAILABLE": "⛔ A courier has already taken this order, it can't be cancelled.",
    "NOT_FOUND": "❌ Order not found.",
}


@router.callback_query(F.data == SHOP_NEW_ORDER)
async def new_order(callback: CallbackQuery, flows: FlowDispatcher):
    await callback.answer()
    replies = await flows.start(FlowType.ORDER_CREATION, callback.from_user.id)
    await send_replies(callback.bot, callback.message.chat.id, replies)


@router.callback_query(F.data == SHOP_MY_ORDERS)
async def my_orders(callback: CallbackQuery, flows: FlowDispatcher):
    await callback.answer()
    replies = await flows.start(FlowType.ORDER_SELECTION, callback.from_user.id)
    await send_replies(callback.bot, callback.message.chat.id, replies)


@router.callback_query(F.data.startswith(EDIT_PREFIX))
async def edit_order(callback: CallbackQuery, flows: FlowDispatcher):
    await callback.answer()
    order_id = callback.data.removeprefix(EDIT_PREFIX)
    replies = await flows.start(FlowType.ORDER_EDIT, callback.from_user.id, order_id=order_id)
    await send_replies(callback.bot, callback.message.chat.id, replies)


@router.callback_query(F.data.startswith(CANCEL_PREFIX))
async def cancel_order(callback: CallbackQuery, api: ApiClient):
    order_id = callback.data.removeprefix(CANCEL_PREFIX)
    outcome = await api.cancel_order(order_id)
    if outcome is None:
        await callback.answer("⚠️ Service unavailable, try again later.", show_alert=True)
        return

    logger.info("Shop %s cancel of order %s: %s", callback.from_user.id, order_id, outcome)
    await callback.answer()
    await callback.message.answer(CANCEL_MESSAGES.get(outcome, "⚠️ Couldn't cancel the order."))
