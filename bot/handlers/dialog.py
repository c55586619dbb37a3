"""
Catch-all handlers feeding the active dialog.

Registered last: anything the menu handlers did not take is turned into an
Event and routed by the FlowDispatcher.
"""

import logging

from aiogram import Router
from aiogram.types import CallbackQuery, Message

from bot.dispatcher import DispatchStatus, FlowDispatcher
from bot.flows.base import Event, EventKind
from bot.keyboards.common import send_replies

router = Router()
logger = logging.getLogger(__name__)


def event_from_message(message: Message) -> Event | None:
    user_id = message.from_user.id
    if message.contact:
        return Event(EventKind.CONTACT, user_id, phone=message.contact.phone_number)
    if message.photo:
        # Largest size is last
        return Event(EventKind.PHOTO, user_id, photo_file_id=message.photo[-1].file_id)
    if message.text is not None:
        return Event(EventKind.TEXT, user_id, text=message.text)
    return None


@router.message()
async def on_message(message: Message, flows: FlowDispatcher):
    event = event_from_message(message)
    if event is None:
        return

    status, replies = await flows.dispatch(event)
    if status == DispatchStatus.NOT_HANDLED:
        await message.answer("Send /start to open the menu.")
        return
    await send_replies(message.bot, message.chat.id, replies)


@router.callback_query()
async def on_callback(callback: CallbackQuery, flows: FlowDispatcher):
    event = Event(EventKind.CALLBACK, callback.from_user.id, data=callback.data)
    status, replies = await flows.dispatch(event)
    if status == DispatchStatus.NOT_HANDLED:
        # Button from a finished or abandoned dialog
        await callback.answer("This button is no longer active.")
        return
    await callback.answer()
    await send_replies(callback.bot, callback.message.chat.id, replies)
