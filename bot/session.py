"""
Per-user dialog sessions on top of aiogram FSM storage.

MemoryStorage keeps sessions in-process; RedisStorage shares them between
bot replicas. Either way every read and write touches a single user key.
"""

import logging

from aiogram.fsm.storage.base import BaseStorage, StorageKey
from pydantic import ValidationError

from bot.states.base import DialogState, FlowType
from bot.states.order_creation import OrderCreationState
from bot.states.order_edit import OrderEditState
from bot.states.order_selection import OrderSelectionState
from bot.states.registration import CourierRegistrationState, ShopRegistrationState

logger = logging.getLogger(__name__)

STATE_MODELS: dict[FlowType, type[DialogState]] = {
    FlowType.ORDER_CREATION: OrderCreationState,
    FlowType.ORDER_EDIT: OrderEditState,
    FlowType.SHOP_REGISTRATION: ShopRegistrationState,
    FlowType.COURIER_REGISTRATION: CourierRegistrationState,
    FlowType.ORDER_SELECTION: OrderSelectionState,
}

_DATA_KEY = "dialog"


class SessionStore:
    def __init__(self, storage: BaseStorage, bot_id: int):
        self.storage = storage
        self.bot_id = bot_id

    def _key(self, user_id: int) -> StorageKey:
        # Dialogs happen in private chats, where chat id == user id
        return StorageKey(bot_id=self.bot_id, chat_id=user_id, user_id=user_id)

    async def get(self, user_id: int) -> DialogState | None:
        data = await self.storage.get_data(self._key(user_id))
        raw = data.get(_DATA_KEY)
        if not raw:
            return None
        try:
            model = STATE_MODELS[FlowType(raw["flow"])]
            return model.model_validate(raw)
        except (KeyError, ValueError, ValidationError) as e:
            logger.error("Dropping unreadable session for user %s: %s", user_id, e)
            await self.clear(user_id)
            return None

    async def set(self, user_id: int, state: DialogState) -> None:
        key = self._key(user_id)
        await self.storage.set_state(key, state.fsm_state)
        await self.storage.set_data(key, {_DATA_KEY: state.model_dump(mode="json")})

    async def clear(self, user_id: int) -> None:
        key = self._key(user_id)
        await self.storage.set_state(key, None)
        await self.storage.set_data(key, {})
