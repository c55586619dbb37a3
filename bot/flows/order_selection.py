"""
Shop "My orders" dialog.

The shop sees its recent orders as a numbered list and replies with a list
number or an order id; the chosen order is shown with edit/cancel actions
while it is still NEW.
"""

import logging
from html import escape

from bot.flows.base import Button, Event, EventKind, FlowContext, FlowResult, Reply
from bot.states.order_selection import OrderSelectionState

logger = logging.getLogger(__name__)

ACCEPTS = {EventKind.TEXT}

EDIT_PREFIX = "order_edit:"
CANCEL_PREFIX = "order_cancel:"

STATUS_LABELS = {
    "NEW": "🆕 Waiting for a courier",
    "ACCEPTED": "🚴 Courier assigned",
    "PICKED_UP": "📦 Picked up",
    "DELIVERED": "✅ Delivered",
    "CANCELLED": "❌ Cancelled",
    "RETURNED": "↩️ Returned",
}

# Shortest id prefix accepted when the shop types an order id
MIN_ID_PREFIX = 6


def short_id(order_id: str) -> str:
    return str(order_id)[:8]


def format_order(order: dict) -> str:
    lines = [
        f"📦 <b>Order #{short_id(order['id'])}</b>",
        f"📅 {order.get('delivery_date')}",
        f"{STATUS_LABELS.get(order.get('status'), order.get('status'))}",
        "",
    ]
    for stop in order.get("stops") or []:
        lines.append(f"📍 {stop['stop_number']}. {escape(stop['delivery_address'])}")
        lines.append(f"    👤 {escape(stop['recipient_name'])}, 📞 {escape(stop['recipient_phone'])}")
        if stop.get("comment"):
            lines.append(f"    💬 {escape(stop['comment'])}")
        lines.append(f"    💰 {stop['delivery_price']} ₽")
    lines += ["", f"💰 Total: <b>{order.get('total_price')} ₽</b>"]
    return "\n".join(lines)


def order_actions(order: dict) -> list[list[Button]]:
    if order.get("status") != "NEW":
        return []
    return [[
        Button("✏️ Edit", f"{EDIT_PREFIX}{order['id']}"),
        Button("❌ Cancel", f"{CANCEL_PREFIX}{order['id']}"),
    ]]


async def start(ctx: FlowContext, user_id: int) -> FlowResult:
    orders = await ctx.api.list_shop_orders(user_id)
    if orders is None:
        return FlowResult.end("⚠️ Couldn't load your orders right now. Try again later.")
    if not orders:
        return FlowResult.end("📭 You have no orders yet.")

    lines = ["📋 <b>Your recent orders</b>", ""]
    for number, order in enumerate(orders, start=1):
        label = STATUS_LABELS.get(order.get("status"), order.get("status"))
        stops = order.get("stops") or []
        lines.append(
            f"{number}. #{short_id(order['id'])} · {order.get('delivery_date')} · "
            f"{len(stops)} stop(s) · {order.get('total_price')} ₽ · {label}"
        )
    lines += ["", "Send the order's <b>number</b> from the list (or its id) to open it."]

    state = OrderSelectionState(order_ids=[str(order["id"]) for order in orders])
    return FlowResult.stay(state, "\n".join(lines))


def _match(state: OrderSelectionState, text: str) -> str | None:
    if text.isdigit():
        index = int(text)
        if 1 <= index <= len(state.order_ids):
            return state.order_ids[index - 1]
        return None

    typed = text.lstrip("#").lower()
    if len(typed) < MIN_ID_PREFIX:
        return None
    matches = [order_id for order_id in state.order_ids if order_id.lower().startswith(typed)]
    return matches[0] if len(matches) == 1 else None


async def handle(ctx: FlowContext, event: Event, state: OrderSelectionState) -> FlowResult:
    order_id = _match(state, event.clean_text)
    if order_id is None:
        return FlowResult.stay(
            state,
            f"❌ No such order. Send a number from 1 to {len(state.order_ids)}:",
        )

    order = await ctx.api.get_order(order_id)
    if order is None:
        return FlowResult.end("❌ Order not found.")
    return FlowResult.end(Reply(format_order(order), buttons=order_actions(order)))
