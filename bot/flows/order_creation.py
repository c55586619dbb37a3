"""
Order creation dialog.

Flow:
  Date → Recipient name → Recipient phone → Address → [quote]
  → Confirm suggested price / type a price → Comment → Add another stop?
  Every extra stop repeats name → comment, priced from the previous stop.
"""

import logging
from html import escape

from bot.flows.base import (
    ADD_STOP_NO, ADD_STOP_YES, COMMENT_SKIP, DATE_TODAY, PRICE_ACCEPT, SKIP_COMMAND,
    Button, Event, EventKind, FlowContext, FlowResult, FlowStateError, Reply,
    date_buttons, parse_amount, pick_date,
)
from bot.states.order_creation import OrderCreationState, OrderCreationStep, StopDraft

logger = logging.getLogger(__name__)

ACCEPTS = {EventKind.TEXT, EventKind.CALLBACK}

DEFAULT_MIN_PRICE = 300
MIN_NAME_LEN = 2
MIN_PHONE_LEN = 5
MIN_ADDRESS_LEN = 10


def _step_label(state: OrderCreationState, number: int) -> str:
    # Numbered steps only make sense for the first stop
    if len(state.stops) > 1:
        return ""
    return f"Step {number} of 6\n"


def _require_stop(state: OrderCreationState) -> StopDraft:
    stop = state.current_stop
    if stop is None:
        raise FlowStateError(f"order creation at step {state.step.value} has no stop draft")
    return stop


def _running_total(state: OrderCreationState) -> int:
    return sum(stop.price or 0 for stop in state.stops)


# ── Start ──────────────────────────────────────────────────

async def start(ctx: FlowContext, user_id: int) -> FlowResult:
    shop = await ctx.api.get_shop(user_id)
    if not shop:
        return FlowResult.end(
            "❌ You don't have a registered shop yet.\n"
            "Register one via /start first."
        )
    if not shop.get("is_active"):
        logger.info("Inactive shop %s tried to create an order", shop.get("id"))
        return FlowResult.end(
            "⏳ <b>Your shop is not activated yet</b>\n\n"
            "An administrator has to approve it first.\n"
            "You'll be able to create orders right after that. 🙏"
        )

    tariffs = await ctx.api.get_tariffs()
    state = OrderCreationState(
        shop_id=str(shop["id"]),
        min_price=tariffs["min_price"] if tariffs else DEFAULT_MIN_PRICE,
        tariff_text=tariffs["description"] if tariffs else "",
    )

    text = "📦 <b>New order</b>\n\n"
    if not ctx.today_allowed():
        text += (
            f"⏰ Same-day orders close at {ctx.settings.ORDER_CUTOFF_HOUR}:00,\n"
            "this order will be for <b>tomorrow</b>.\n\n"
        )
    text += "Step 1 of 6\nChoose the delivery date:"
    return FlowResult.stay(state, text, buttons=date_buttons(ctx))


# ── Steps ──────────────────────────────────────────────────

async def _on_date(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    chosen = pick_date(ctx, event)
    if chosen is None:
        if event.kind == EventKind.CALLBACK and event.data == DATE_TODAY:
            text = (
                f"⏰ It's past {ctx.settings.ORDER_CUTOFF_HOUR}:00, same-day delivery is closed.\n"
                "Please choose tomorrow:"
            )
        else:
            text = "Please choose the date with the buttons below:"
        return FlowResult.stay(state, text, buttons=date_buttons(ctx))

    state.delivery_date = chosen
    state.stops = [StopDraft(number=1)]
    state.step = OrderCreationStep.RECIPIENT_NAME
    return FlowResult.stay(
        state,
        f"✅ Date: <b>{chosen:%d.%m.%Y}</b>\n\n"
        f"{_step_label(state, 2)}"
        "Enter the <b>recipient's name</b>:",
    )


async def _on_recipient_name(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    stop = _require_stop(state)
    name = event.clean_text
    if event.kind != EventKind.TEXT or len(name) < MIN_NAME_LEN:
        return FlowResult.stay(state, f"❌ Name is too short. Enter at least {MIN_NAME_LEN} characters:")

    stop.recipient_name = name
    state.step = OrderCreationStep.RECIPIENT_PHONE
    return FlowResult.stay(
        state,
        f"✅ Recipient: <b>{escape(name)}</b>\n\n"
        f"{_step_label(state, 3)}"
        "Enter the <b>recipient's phone</b>:",
    )


async def _on_recipient_phone(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    stop = _require_stop(state)
    phone = event.clean_text
    if event.kind != EventKind.TEXT or len(phone) < MIN_PHONE_LEN:
        return FlowResult.stay(state, "❌ Phone number is too short. Try again:")

    stop.recipient_phone = phone
    state.step = OrderCreationStep.ADDRESS
    return FlowResult.stay(
        state,
        f"✅ Phone: <b>{escape(phone)}</b>\n\n"
        f"{_step_label(state, 4)}"
        "Enter the <b>full delivery address</b>:\n\n"
        "<i>e.g. Lenina 44, entrance 2, apt 15</i>",
    )


def _anchor_for(state: OrderCreationState) -> tuple[float, float] | None:
    """Previous stop's point, else the most recent earlier stop that has one."""
    for stop in reversed(state.stops[:-1]):
        if stop.point is not None:
            return stop.point
    return None


def _manual_price(state: OrderCreationState, reason: str) -> FlowResult:
    state.step = OrderCreationStep.PRICE_MANUAL
    text = (
        f"{reason}\n\n"
        f"{_step_label(state, 5)}"
        "Enter the <b>delivery price</b> manually:"
    )
    if state.tariff_text:
        text += f"\n\n💡 <b>Tariffs</b> (min {state.min_price} ₽):\n{state.tariff_text}"
    else:
        text += f"\n\n💡 Minimum price: {state.min_price} ₽"
    return FlowResult.stay(state, text)


async def _on_address(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    stop = _require_stop(state)
    address = event.clean_text
    if event.kind != EventKind.TEXT or len(address) < MIN_ADDRESS_LEN:
        return FlowResult.stay(
            state,
            "❌ Address is too short.\n\n"
            "Give the full address: street, house, entrance, apartment\n"
            "<i>e.g. Lenina 44, entrance 2, apt 15</i>",
        )

    stop.address = address
    if stop.number == 1:
        quote = await ctx.api.quote(address, shop_id=state.shop_id)
    else:
        quote = await ctx.api.quote(address, anchor=_anchor_for(state))

    if quote is None:
        return _manual_price(state, "⚠️ Automatic pricing is unavailable right now.")

    status = quote.get("status")
    if status == "UNRESOLVED":
        logger.info("Address not resolved for user %s: %r", event.user_id, address)
        return _manual_price(state, "⚠️ Couldn't locate this address automatically.")
    if status == "OUT_OF_ZONE":
        return _manual_price(
            state,
            "⚠️ This address is outside the delivery zone.\n"
            f"Region: {escape(quote.get('region') or 'unknown')}",
        )

    stop.resolved_address = quote.get("full_address")
    stop.latitude = quote.get("latitude")
    stop.longitude = quote.get("longitude")

    if status == "NO_ANCHOR" or quote.get("price") is None:
        return _manual_price(
            state,
            f"✅ Address found: <b>{escape(stop.resolved_address or address)}</b>\n\n"
            "⚠️ Couldn't calculate the distance.",
        )

    stop.distance_km = quote["distance_km"]
    stop.suggested_price = quote["price"]
    state.step = OrderCreationStep.PRICE_CONFIRM

    text = (
        f"✅ <b>Address found:</b>\n{escape(stop.resolved_address or address)}\n\n"
        f"📏 <b>Distance:</b> {stop.distance_km} km\n"
    )
    if quote.get("used_fallback"):
        text += "<i>(straight-line estimate, routing is unavailable)</i>\n"
    text += (
        f"💰 <b>Suggested price:</b> {stop.suggested_price} ₽\n\n"
        f"{_step_label(state, 5)}"
        "Confirm the price or type your own:"
    )
    return FlowResult.stay(
        state, text,
        buttons=[[Button(f"✅ Confirm {stop.suggested_price} ₽", PRICE_ACCEPT)]],
    )


def _accept_price(state: OrderCreationState, amount: int | None) -> FlowResult:
    stop = _require_stop(state)
    if amount is None:
        return FlowResult.stay(state, "❌ Enter the price as a number, e.g. 450:")
    if amount < state.min_price:
        return FlowResult.stay(state, f"❌ Minimum price is {state.min_price} ₽. Enter a bigger amount:")

    stop.price = amount
    state.step = OrderCreationStep.STOP_COMMENT
    return FlowResult.stay(
        state,
        f"✅ Price: <b>{amount} ₽</b>\n\n"
        "Enter a <b>comment</b> for this stop\n"
        "<i>e.g. intercom 123, call 10 minutes ahead</i>\n\n"
        f"or send {SKIP_COMMAND} to skip:",
        buttons=[[Button("⏭ Skip", COMMENT_SKIP)]],
    )


async def _on_price_confirm(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    stop = _require_stop(state)
    if event.kind == EventKind.CALLBACK:
        if event.data != PRICE_ACCEPT:
            return FlowResult.stay(state, "Confirm the suggested price or type your own:")
        if stop.suggested_price is None:
            raise FlowStateError("price confirmation without a suggested price")
        return _accept_price(state, stop.suggested_price)
    return _accept_price(state, parse_amount(event.clean_text))


async def _on_price_manual(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    if event.kind != EventKind.TEXT:
        return FlowResult.stay(state, "Type the delivery price as a number:")
    return _accept_price(state, parse_amount(event.clean_text))


async def _on_comment(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    stop = _require_stop(state)
    if event.kind == EventKind.CALLBACK:
        if event.data != COMMENT_SKIP:
            return FlowResult.stay(state, f"Type a comment or send {SKIP_COMMAND}:")
        stop.comment = None
    elif event.clean_text.lower() == SKIP_COMMAND:
        stop.comment = None
    elif event.clean_text:
        stop.comment = event.clean_text
    else:
        return FlowResult.stay(state, f"Type a comment or send {SKIP_COMMAND}:")

    state.step = OrderCreationStep.ADD_STOP
    return FlowResult.stay(
        state,
        f"✅ <b>Stop {stop.number} added!</b>\n"
        f"💰 Running total: <b>{_running_total(state)} ₽</b>\n\n"
        "➕ <b>Add another delivery address?</b>",
        buttons=[
            [Button("➕ Add address", ADD_STOP_YES)],
            [Button("✅ Finish", ADD_STOP_NO)],
        ],
    )


async def _on_add_stop(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    if event.kind == EventKind.CALLBACK and event.data == ADD_STOP_YES:
        number = len(state.stops) + 1
        state.stops.append(StopDraft(number=number))
        state.step = OrderCreationStep.RECIPIENT_NAME
        return FlowResult.stay(
            state,
            f"📍 <b>Additional stop #{number}</b>\n\n"
            "Enter the <b>recipient's name</b>:",
        )
    if event.kind == EventKind.CALLBACK and event.data == ADD_STOP_NO:
        return await _finalize(ctx, event, state)

    return FlowResult.stay(
        state,
        "Use the buttons: add another address or finish the order.",
        buttons=[
            [Button("➕ Add address", ADD_STOP_YES)],
            [Button("✅ Finish", ADD_STOP_NO)],
        ],
    )


async def _finalize(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    if state.delivery_date is None:
        raise FlowStateError("order creation finished without a delivery date")

    payload = []
    for stop in state.stops:
        if not (stop.recipient_name and stop.recipient_phone and stop.address and stop.price):
            raise FlowStateError(f"stop #{stop.number} is incomplete at finalize")
        payload.append({
            "recipient_name": stop.recipient_name,
            "recipient_phone": stop.recipient_phone,
            "delivery_address": stop.address,
            "latitude": stop.latitude,
            "longitude": stop.longitude,
            "distance_km": stop.distance_km,
            "delivery_price": stop.price,
            "comment": stop.comment,
        })

    order = await ctx.api.create_order(event.user_id, state.delivery_date, payload)
    if order is None:
        logger.error("Order creation rejected for user %s, keeping %d stop(s) for retry", event.user_id, len(state.stops))
        return FlowResult.stay(
            state,
            "❌ Couldn't create the order right now. Your addresses are kept, tap <b>Finish</b> to try again.",
            buttons=[
                [Button("➕ Add address", ADD_STOP_YES)],
                [Button("✅ Finish", ADD_STOP_NO)],
            ],
        )

    lines = [
        "━━━━━━━━━━━━━━━━━━━━━━",
        "✅ <b>Order created!</b>",
        "━━━━━━━━━━━━━━━━━━━━━━",
        "",
        f"📅 Date: <b>{state.delivery_date:%d.%m.%Y}</b>",
    ]
    for stop in state.stops:
        lines.append(
            f"📍 {stop.number}. {escape(stop.recipient_name)}, {escape(stop.address)} — {stop.price} ₽"
        )
    lines += ["", f"💰 Total: <b>{order.get('total_price', _running_total(state))} ₽</b>", "", "Couriers can see it now. 🚚"]
    logger.info("Order %s created via bot by user %s", order.get("id"), event.user_id)
    return FlowResult.end(Reply("\n".join(lines)))


_HANDLERS = {
    OrderCreationStep.DATE: _on_date,
    OrderCreationStep.RECIPIENT_NAME: _on_recipient_name,
    OrderCreationStep.RECIPIENT_PHONE: _on_recipient_phone,
    OrderCreationStep.ADDRESS: _on_address,
    OrderCreationStep.PRICE_CONFIRM: _on_price_confirm,
    OrderCreationStep.PRICE_MANUAL: _on_price_manual,
    OrderCreationStep.STOP_COMMENT: _on_comment,
    OrderCreationStep.ADD_STOP: _on_add_stop,
}


async def handle(ctx: FlowContext, event: Event, state: OrderCreationState) -> FlowResult:
    state = state.model_copy(deep=True)
    step_handler = _HANDLERS.get(state.step)
    if step_handler is None:
        raise FlowStateError(f"unknown order creation step {state.step!r}")
    return await step_handler(ctx, event, state)
