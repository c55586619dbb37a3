"""Inline keyboard builders for courier interactions."""

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

COURIER_AVAILABLE = "courier:available"
COURIER_MY_ORDERS = "courier:my_orders"
CLAIM_PREFIX = "claim:"
ADVANCE_PREFIX = "advance:"
STOP_DONE_PREFIX = "stop_done:"


def courier_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🆕 Available orders", callback_data=COURIER_AVAILABLE)],
        [InlineKeyboardButton(text="📦 My active orders", callback_data=COURIER_MY_ORDERS)],
    ])


def claim_keyboard(order_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="✅ Take this order", callback_data=f"{CLAIM_PREFIX}{order_id}")],
    ])


def active_order_keyboard(order: dict) -> InlineKeyboardMarkup:
    """Next actions for an order the courier is carrying."""
    order_id = order["id"]
    buttons = []
    if order["status"] == "ACCEPTED":
        buttons.append([InlineKeyboardButton(text="📦 Picked up", callback_data=f"{ADVANCE_PREFIX}{order_id}:PICKED_UP")])
    elif order["status"] == "PICKED_UP":
        for stop in order.get("stops") or []:
            if stop.get("stop_status") != "DELIVERED":
                buttons.append([InlineKeyboardButton(
                    text=f"✅ Delivered stop {stop['stop_number']}",
                    callback_data=f"{STOP_DONE_PREFIX}{order_id}:{stop['stop_number']}",
                )])
    buttons.append([InlineKeyboardButton(text="↩️ Return to shop", callback_data=f"{ADVANCE_PREFIX}{order_id}:RETURNED")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)
