"""
/start, role choice and /cancel.

/start → known shop → shop menu
       → known courier → courier menu (or "pending" notice)
       → role chosen but not registered → registration dialog
       → new user → role keyboard
"""

import logging

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message

from bot.api_client import ApiClient
from bot.dispatcher import FlowDispatcher
from bot.keyboards.common import ROLE_COURIER, ROLE_SHOP, role_keyboard, send_replies
from bot.keyboards.courier_kb import courier_menu_keyboard
from bot.keyboards.shop_kb import shop_menu_keyboard
from bot.states.base import FlowType

router = Router()
logger = logging.getLogger(__name__)

HEADER = (
    "━━━━━━━━━━━━━━━━━━━━━━\n"
    "💐 <b>Petal Courier</b>\n"
    "━━━━━━━━━━━━━━━━━━━━━━\n\n"
)


async def show_shop_home(message: Message, shop: dict) -> None:
    if not shop.get("is_active"):
        await message.answer(
            f"{HEADER}🏪 <b>{shop['shop_name']}</b>\n\n"
            "⏳ Your shop is waiting for activation by an administrator."
        )
        return
    await message.answer(
        f"{HEADER}🏪 <b>{shop['shop_name']}</b>\n\nWhat would you like to do?",
        reply_markup=shop_menu_keyboard(),
    )


async def show_courier_home(message: Message, courier: dict) -> None:
    if courier.get("status") == "BLOCKED":
        await message.answer(f"{HEADER}⛔ Your courier account is blocked.")
        return
    if not courier.get("is_active"):
        await message.answer(f"{HEADER}⏳ Your application is being reviewed by an administrator.")
        return
    await message.answer(
        f"{HEADER}🚴 Hi, <b>{courier['full_name']}</b>!\n\nReady to deliver some flowers?",
        reply_markup=courier_menu_keyboard(),
    )


@router.message(CommandStart())
async def cmd_start(message: Message, flows: FlowDispatcher, api: ApiClient):
    """Handle /start — register or welcome back."""
    user_id = message.from_user.id
    await flows.cancel(user_id)

    user = await api.ensure_user(user_id, message.from_user.full_name, message.from_user.username)
    if user is None:
        await message.answer("⚠️ The service is temporarily unavailable. Please try again later.")
        return

    role = user.get("role")
    if role == "SHOP":
        shop = await api.get_shop(user_id)
        if shop:
            await show_shop_home(message, shop)
            return
        await send_replies(message.bot, message.chat.id, await flows.start(FlowType.SHOP_REGISTRATION, user_id))
        return

    if role == "COURIER":
        courier = await api.get_courier(user_id)
        if courier:
            await show_courier_home(message, courier)
            return
        await send_replies(message.bot, message.chat.id, await flows.start(FlowType.COURIER_REGISTRATION, user_id))
        return

    await message.answer(
        f"{HEADER}Welcome, <b>{message.from_user.first_name}</b>! 👋\n\n"
        "Flower deliveries across the city, from shop to doorstep.\n\n"
        "Who are you?",
        reply_markup=role_keyboard(),
    )


@router.callback_query(F.data.in_({ROLE_SHOP, ROLE_COURIER}))
async def choose_role(callback: CallbackQuery, flows: FlowDispatcher, api: ApiClient):
    """Tag the user and open the matching registration dialog."""
    await callback.answer()
    user_id = callback.from_user.id
    role, flow = ("SHOP", FlowType.SHOP_REGISTRATION) if callback.data == ROLE_SHOP else ("COURIER", FlowType.COURIER_REGISTRATION)

    if await api.set_role(user_id, role) is None:
        await callback.message.answer("⚠️ The service is temporarily unavailable. Please try again later.")
        return
    logger.info("User %s chose role %s", user_id, role)
    await send_replies(callback.bot, callback.message.chat.id, await flows.start(flow, user_id))


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, flows: FlowDispatcher):
    if await flows.cancel(message.from_user.id):
        await message.answer("❎ Cancelled. Send /start to open the menu.")
    else:
        await message.answer("Nothing to cancel. Send /start to open the menu.")
