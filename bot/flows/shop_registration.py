"""Shop registration dialog: name → pickup address → shared contact."""

import logging
from html import escape

from bot.flows.base import Event, EventKind, FlowContext, FlowResult, FlowStateError, Reply
from bot.states.registration import ShopRegistrationState, ShopRegistrationStep

logger = logging.getLogger(__name__)

ACCEPTS = {EventKind.TEXT, EventKind.CALLBACK, EventKind.CONTACT, EventKind.PHOTO}

NAME_LEN = (2, 255)
ADDRESS_LEN = (5, 500)


def _contact_prompt(state: ShopRegistrationState, text: str) -> FlowResult:
    return FlowResult(replies=[Reply(text, request_contact=True)], state=state)


async def start(ctx: FlowContext, user_id: int) -> FlowResult:
    existing = await ctx.api.get_shop(user_id)
    if existing:
        return FlowResult.end(f"🏪 You already have a shop: <b>{escape(existing['shop_name'])}</b>")

    return FlowResult.stay(
        ShopRegistrationState(),
        "🏪 <b>Shop registration</b>\n\nStep 1 of 3\nEnter your <b>shop name</b>:",
    )


async def handle(ctx: FlowContext, event: Event, state: ShopRegistrationState) -> FlowResult:
    state = state.model_copy(deep=True)

    if state.step == ShopRegistrationStep.NAME:
        name = event.clean_text
        if event.kind != EventKind.TEXT or not NAME_LEN[0] <= len(name) <= NAME_LEN[1]:
            return FlowResult.stay(state, f"❌ Shop name must be {NAME_LEN[0]} to {NAME_LEN[1]} characters. Try again:")
        state.shop_name = name
        state.step = ShopRegistrationStep.ADDRESS
        return FlowResult.stay(
            state,
            f"✅ Name: <b>{escape(name)}</b>\n\nStep 2 of 3\nEnter the <b>pickup address</b> couriers will come to:",
        )

    if state.step == ShopRegistrationStep.ADDRESS:
        address = event.clean_text
        if event.kind != EventKind.TEXT or not ADDRESS_LEN[0] <= len(address) <= ADDRESS_LEN[1]:
            return FlowResult.stay(state, f"❌ Address must be {ADDRESS_LEN[0]} to {ADDRESS_LEN[1]} characters. Try again:")
        state.pickup_address = address
        state.step = ShopRegistrationStep.CONTACT
        return _contact_prompt(state, "✅ Address saved.\n\nStep 3 of 3\nTap the button below to share your <b>phone number</b>:")

    if state.step == ShopRegistrationStep.CONTACT:
        if event.kind != EventKind.CONTACT or not event.phone:
            return _contact_prompt(state, "📱 Please use the <b>Share contact</b> button, typed numbers are not accepted:")
        if not state.shop_name or not state.pickup_address:
            raise FlowStateError("shop registration reached contact step without name or address")

        shop = await ctx.api.register_shop(event.user_id, state.shop_name, state.pickup_address, event.phone)
        if shop is None:
            logger.warning("Shop registration failed for user %s, keeping the dialog at contact step", event.user_id)
            return _contact_prompt(
                state, "❌ Couldn't register the shop right now. Share your contact again to retry:",
            )

        logger.info("Shop registered via bot: %s (user %s)", state.shop_name, event.user_id)
        notice = ctx.admin_notice(
            f"🏪 New shop awaiting activation: <b>{escape(state.shop_name)}</b>\n"
            f"📍 {escape(state.pickup_address)}\n🆔 <code>{shop['id']}</code>"
        )
        return FlowResult.end(Reply(
            "━━━━━━━━━━━━━━━━━━━━━━\n"
            "✅ <b>Shop registered!</b>\n"
            "━━━━━━━━━━━━━━━━━━━━━━\n\n"
            f"🏪 {escape(state.shop_name)}\n"
            f"📍 {escape(state.pickup_address)}\n"
            f"📞 {escape(event.phone)}\n\n"
            "⏳ An administrator will activate it shortly.",
            remove_keyboard=True,
        ), *notice)

    raise FlowStateError(f"unknown shop registration step {state.step!r}")
