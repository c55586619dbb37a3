"""
Order edit dialog (NEW orders only).

Flow:
  [Stop, multi-stop orders only] → Field → Value (address / phone / comment)
                                         → Date (today / tomorrow buttons)
"""

import logging
from html import escape

from bot.flows.base import (
    SKIP_COMMAND, Button, Event, EventKind, FlowContext, FlowResult, FlowStateError,
    date_buttons, pick_date,
)
from bot.states.order_edit import EditField, OrderEditState, OrderEditStep

logger = logging.getLogger(__name__)

ACCEPTS = {EventKind.TEXT, EventKind.CALLBACK}

MIN_PHONE_LEN = 5
MIN_ADDRESS_LEN = 10

STOP_PREFIX = "edit_stop:"
FIELD_PREFIX = "edit_field:"

NOT_EDITABLE_TEXT = "⛔ This order can't be edited now: a courier has already taken it or it was cancelled."


def _field_buttons() -> list[list[Button]]:
    return [
        [
            Button("📍 Address", f"{FIELD_PREFIX}{EditField.ADDRESS.value}"),
            Button("📞 Phone", f"{FIELD_PREFIX}{EditField.PHONE.value}"),
        ],
        [
            Button("💬 Comment", f"{FIELD_PREFIX}{EditField.COMMENT.value}"),
            Button("📅 Date", f"{FIELD_PREFIX}{EditField.DATE.value}"),
        ],
    ]


def _stop_buttons(count: int) -> list[list[Button]]:
    return [[Button(f"📍 Stop {n}", f"{STOP_PREFIX}{n}") for n in range(1, count + 1)]]


async def start(ctx: FlowContext, user_id: int, order_id: str) -> FlowResult:
    order = await ctx.api.get_order(order_id)
    if not order:
        return FlowResult.end("❌ Order not found.")
    if order.get("status") != "NEW":
        return FlowResult.end(NOT_EDITABLE_TEXT)

    stops = order.get("stops") or []
    if not stops:
        raise FlowStateError(f"order {order_id} has no stops")

    state = OrderEditState(order_id=str(order["id"]), stop_count=len(stops))
    if len(stops) == 1:
        state.stop_number = 1
        state.step = OrderEditStep.FIELD
        return FlowResult.stay(state, "✏️ <b>Edit order</b>\n\nWhat do you want to change?", buttons=_field_buttons())

    state.step = OrderEditStep.STOP
    return FlowResult.stay(
        state,
        f"✏️ <b>Edit order</b>\n\nThis order has {len(stops)} stops. Which one?",
        buttons=_stop_buttons(len(stops)),
    )


async def _on_stop(ctx: FlowContext, event: Event, state: OrderEditState) -> FlowResult:
    raw = event.data.removeprefix(STOP_PREFIX) if event.kind == EventKind.CALLBACK and event.data else event.clean_text
    try:
        number = int(raw)
    except ValueError:
        number = 0
    if not 1 <= number <= state.stop_count:
        return FlowResult.stay(state, f"Choose a stop from 1 to {state.stop_count}:", buttons=_stop_buttons(state.stop_count))

    state.stop_number = number
    state.step = OrderEditStep.FIELD
    return FlowResult.stay(state, f"📍 Stop {number}. What do you want to change?", buttons=_field_buttons())


async def _on_field(ctx: FlowContext, event: Event, state: OrderEditState) -> FlowResult:
    field = None
    if event.kind == EventKind.CALLBACK and event.data and event.data.startswith(FIELD_PREFIX):
        try:
            field = EditField(event.data.removeprefix(FIELD_PREFIX))
        except ValueError:
            field = None
    if field is None:
        return FlowResult.stay(state, "Choose what to change with the buttons:", buttons=_field_buttons())

    state.field = field
    if field == EditField.DATE:
        state.step = OrderEditStep.DATE
        return FlowResult.stay(state, "📅 Choose the new delivery date:", buttons=date_buttons(ctx))

    state.step = OrderEditStep.VALUE
    prompts = {
        EditField.ADDRESS: "📍 Enter the new <b>delivery address</b>:",
        EditField.PHONE: "📞 Enter the new <b>recipient phone</b>:",
        EditField.COMMENT: f"💬 Enter the new <b>comment</b> (or {SKIP_COMMAND} to remove it):",
    }
    return FlowResult.stay(state, prompts[field])


def _outcome_reply(result: dict | None) -> FlowResult | None:
    """Common handling of NOT_EDITABLE / NOT_FOUND; None means the edit went through."""
    outcome = result.get("outcome") if result else None
    if outcome == "NOT_EDITABLE":
        return FlowResult.end(NOT_EDITABLE_TEXT)
    if outcome == "NOT_FOUND":
        return FlowResult.end("❌ Order not found.")
    return None


async def _on_value(ctx: FlowContext, event: Event, state: OrderEditState) -> FlowResult:
    if state.stop_number is None or state.field is None:
        raise FlowStateError("order edit waiting for a value without stop or field")
    if event.kind != EventKind.TEXT:
        return FlowResult.stay(state, "Send the new value as a text message:")

    value = event.clean_text
    if state.field == EditField.ADDRESS:
        if len(value) < MIN_ADDRESS_LEN:
            return FlowResult.stay(state, "❌ Address is too short. Give the full address:")
        changes = {"delivery_address": value}
    elif state.field == EditField.PHONE:
        if len(value) < MIN_PHONE_LEN:
            return FlowResult.stay(state, "❌ Phone number is too short. Try again:")
        changes = {"recipient_phone": value}
    elif state.field == EditField.COMMENT:
        if value.lower() == SKIP_COMMAND or not value:
            changes = {"clear_comment": True}
        else:
            changes = {"comment": value}
    else:
        raise FlowStateError(f"field {state.field!r} does not take a text value")

    result = await ctx.api.update_stop(state.order_id, state.stop_number, changes)
    if result is None:
        return FlowResult.stay(state, "⚠️ Couldn't save the change right now. Send it again in a moment:")
    rejected = _outcome_reply(result)
    if rejected:
        return rejected

    if state.field == EditField.ADDRESS:
        if result.get("address_resolved"):
            text = (
                f"✅ Address updated: <b>{escape(value)}</b>\n"
                f"💰 Prices recalculated, order total: <b>{result.get('total_price')} ₽</b>"
            )
        else:
            text = (
                f"✅ Address updated: <b>{escape(value)}</b>\n"
                "⚠️ Couldn't locate it automatically, prices are unchanged."
            )
    elif state.field == EditField.PHONE:
        text = f"✅ Phone updated: <b>{escape(value)}</b>"
    else:
        text = "✅ Comment removed." if "clear_comment" in changes else "✅ Comment updated."
    logger.info("Order %s stop #%d %s edited by user %s", state.order_id, state.stop_number, state.field.value, event.user_id)
    return FlowResult.end(text)


async def _on_date(ctx: FlowContext, event: Event, state: OrderEditState) -> FlowResult:
    chosen = pick_date(ctx, event)
    if chosen is None:
        return FlowResult.stay(state, "Choose the date with the buttons:", buttons=date_buttons(ctx))

    result = await ctx.api.update_delivery_date(state.order_id, chosen)
    if result is None:
        return FlowResult.stay(state, "⚠️ Couldn't save the change right now. Try again:", buttons=date_buttons(ctx))
    rejected = _outcome_reply(result)
    if rejected:
        return rejected
    return FlowResult.end(f"✅ Delivery date changed to <b>{chosen:%d.%m.%Y}</b>")


_HANDLERS = {
    OrderEditStep.STOP: _on_stop,
    OrderEditStep.FIELD: _on_field,
    OrderEditStep.VALUE: _on_value,
    OrderEditStep.DATE: _on_date,
}


async def handle(ctx: FlowContext, event: Event, state: OrderEditState) -> FlowResult:
    state = state.model_copy(deep=True)
    step_handler = _HANDLERS.get(state.step)
    if step_handler is None:
        raise FlowStateError(f"unknown order edit step {state.step!r}")
    return await step_handler(ctx, event, state)
