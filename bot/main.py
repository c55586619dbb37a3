"""
Petal Courier Telegram bot — long-polling entry point.

Run with: python -m bot.main
"""

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.fsm.storage.base import BaseEventIsolation, BaseStorage
from aiogram.fsm.storage.memory import MemoryStorage, SimpleEventIsolation
from aiogram.fsm.storage.redis import RedisEventIsolation, RedisStorage

from bot.api_client import ApiClient
from bot.config import settings
from bot.dispatcher import FlowDispatcher
from bot.flows.base import FlowContext
from bot.handlers import courier, dialog, shop, start
from bot.session import SessionStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


def build_storage() -> BaseStorage:
    if settings.REDIS_URL:
        logger.info("Dialog sessions stored in Redis")
        return RedisStorage.from_url(settings.REDIS_URL)
    logger.info("Dialog sessions stored in memory")
    return MemoryStorage()


def build_isolation(storage: BaseStorage) -> BaseEventIsolation:
    """Updates from one chat are handled one at a time, across workers when Redis is shared."""
    if isinstance(storage, RedisStorage):
        return RedisEventIsolation(redis=storage.redis)
    return SimpleEventIsolation()


async def run() -> None:
    if not settings.TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

    bot = Bot(token=settings.TELEGRAM_BOT_TOKEN, default=DefaultBotProperties(parse_mode="HTML"))
    storage = build_storage()
    api = ApiClient(settings.API_BASE_URL, timeout=settings.API_TIMEOUT_SEC)
    flows = FlowDispatcher(SessionStore(storage, bot.id), FlowContext(api=api, settings=settings))

    isolation = build_isolation(storage)
    dp = Dispatcher(storage=storage, events_isolation=isolation, flows=flows, api=api)
    # Menu handlers first; the dialog catch-all must stay last
    dp.include_routers(start.router, shop.router, courier.router, dialog.router)

    logger.info("Bot starting, API at %s", settings.API_BASE_URL)
    try:
        await dp.start_polling(bot)
    finally:
        await api.close()
        await isolation.close()
        await storage.close()
        await bot.session.close()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
