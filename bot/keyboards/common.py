"""Keyboard rendering and reply delivery shared by all handlers."""

import logging

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import (
    InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
)

from bot.flows.base import Reply

logger = logging.getLogger(__name__)

ROLE_SHOP = "role:shop"
ROLE_COURIER = "role:courier"


def render_markup(reply: Reply) -> InlineKeyboardMarkup | ReplyKeyboardMarkup | ReplyKeyboardRemove | None:
    """Turn a flow reply's buttons into a Telegram keyboard."""
    if reply.request_contact:
        return ReplyKeyboardMarkup(
            keyboard=[[KeyboardButton(text="📱 Share contact", request_contact=True)]],
            resize_keyboard=True,
            one_time_keyboard=True,
        )
    if reply.buttons:
        return InlineKeyboardMarkup(inline_keyboard=[
            [InlineKeyboardButton(text=button.text, callback_data=button.data) for button in row]
            for row in reply.buttons
        ])
    if reply.remove_keyboard:
        return ReplyKeyboardRemove()
    return None


def role_keyboard() -> InlineKeyboardMarkup:
    """First-time users pick who they are."""
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🏪 I'm a flower shop", callback_data=ROLE_SHOP)],
        [InlineKeyboardButton(text="🚴 I'm a courier", callback_data=ROLE_COURIER)],
    ])


async def send_replies(bot: Bot, chat_id: int, replies: list[Reply]) -> None:
    for reply in replies:
        if reply.chat_id is None:
            await bot.send_message(chat_id, reply.text, reply_markup=render_markup(reply))
            continue
        try:
            await bot.send_message(reply.chat_id, reply.text, reply_markup=render_markup(reply))
        except TelegramAPIError as e:
            logger.warning("Could not deliver notice to chat %s: %s", reply.chat_id, e)
