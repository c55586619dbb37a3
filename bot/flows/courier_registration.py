"""Courier registration dialog: full name → shared contact → selfie with ID."""

import logging
from html import escape

from bot.flows.base import RETRY, Button, Event, EventKind, FlowContext, FlowResult, FlowStateError, Reply
from bot.states.registration import CourierRegistrationState, CourierRegistrationStep

logger = logging.getLogger(__name__)

ACCEPTS = {EventKind.TEXT, EventKind.CALLBACK, EventKind.CONTACT, EventKind.PHOTO}

NAME_LEN = (3, 255)


async def start(ctx: FlowContext, user_id: int) -> FlowResult:
    existing = await ctx.api.get_courier(user_id)
    if existing:
        return FlowResult.end("🚴 You are already registered as a courier.")

    return FlowResult.stay(
        CourierRegistrationState(),
        "🚴 <b>Courier registration</b>\n\nStep 1 of 3\nEnter your <b>full name</b>:",
    )


async def handle(ctx: FlowContext, event: Event, state: CourierRegistrationState) -> FlowResult:
    state = state.model_copy(deep=True)

    if state.step == CourierRegistrationStep.FULL_NAME:
        name = event.clean_text
        if event.kind != EventKind.TEXT or not NAME_LEN[0] <= len(name) <= NAME_LEN[1]:
            return FlowResult.stay(state, f"❌ Full name must be {NAME_LEN[0]} to {NAME_LEN[1]} characters. Try again:")
        state.full_name = name
        state.step = CourierRegistrationStep.CONTACT
        return FlowResult(
            replies=[Reply(
                f"✅ Name: <b>{escape(name)}</b>\n\nStep 2 of 3\nTap the button below to share your <b>phone number</b>:",
                request_contact=True,
            )],
            state=state,
        )

    if state.step == CourierRegistrationStep.CONTACT:
        if event.kind != EventKind.CONTACT or not event.phone:
            return FlowResult(
                replies=[Reply("📱 Please use the <b>Share contact</b> button:", request_contact=True)],
                state=state,
            )
        state.phone = event.phone
        state.step = CourierRegistrationStep.PHOTO
        return FlowResult(
            replies=[Reply(
                "✅ Phone saved.\n\nStep 3 of 3\n📸 Send a <b>selfie holding your passport</b>:",
                remove_keyboard=True,
            )],
            state=state,
        )

    if state.step == CourierRegistrationStep.PHOTO:
        if event.kind == EventKind.PHOTO and event.photo_file_id:
            state.photo_file_id = event.photo_file_id
        elif not (event.kind == EventKind.CALLBACK and event.data == RETRY and state.photo_file_id):
            return FlowResult.stay(state, "📸 Please send a <b>photo</b>:")
        if not state.full_name or not state.phone:
            raise FlowStateError("courier registration reached photo step without name or phone")

        courier = await ctx.api.register_courier(event.user_id, state.full_name, state.phone, state.photo_file_id)
        if courier is None:
            logger.warning("Courier registration failed for user %s, photo kept for retry", event.user_id)
            return FlowResult.stay(
                state,
                "❌ Couldn't submit the registration right now. Tap <b>Retry</b> or send the photo again:",
                buttons=[[Button("🔁 Retry", RETRY)]],
            )

        logger.info("Courier registered via bot: %s (user %s)", state.full_name, event.user_id)
        notice = ctx.admin_notice(
            f"🚴 New courier awaiting activation: <b>{escape(state.full_name)}</b>\n"
            f"📞 {escape(state.phone)}\n🆔 <code>{courier['id']}</code>"
        )
        return FlowResult.end(
            "━━━━━━━━━━━━━━━━━━━━━━\n"
            "✅ <b>Application submitted!</b>\n"
            "━━━━━━━━━━━━━━━━━━━━━━\n\n"
            "⏳ An administrator will review it and activate your account.",
            *notice,
        )

    raise FlowStateError(f"unknown courier registration step {state.step!r}")
