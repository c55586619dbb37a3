"""Shared fixtures: SQLite-backed async sessions, seed data and bot flow context."""

import os

# Settings are read at import time; point them at throwaway backends first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "")

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiogram.fsm.storage.memory import MemoryStorage
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import api.models  # noqa: F401  (registers mappers)
from api.db.database import Base
from api.models import Courier, Order, OrderEvent, OrderStop, Shop, User
from api.services.maps import GeocodeResult
from bot.config import Settings as BotSettings
from bot.flows.base import FlowContext
from bot.session import SessionStore

SHOP_TG = 1001
COURIER_TG = 2001
SHOP_POINT = (55.1600, 61.4000)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'petal.db'}")

    # Take the write lock at BEGIN so concurrent transactions queue instead of deadlocking
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ── Seed helpers ───────────────────────────────────────────

async def add_shop(db, telegram_id=SHOP_TG, active=True, point=SHOP_POINT) -> Shop:
    user = User(telegram_id=telegram_id, full_name="Rose Garden", role="SHOP")
    shop = Shop(
        user=user,
        shop_name="Rose Garden",
        pickup_address="Chelyabinsk, Kirova 10",
        phone="+79000000000",
        is_active=active,
        latitude=point[0] if point else None,
        longitude=point[1] if point else None,
    )
    db.add_all([user, shop])
    await db.commit()
    return shop


async def add_courier(db, telegram_id=COURIER_TG, status="ACTIVE") -> Courier:
    user = User(telegram_id=telegram_id, full_name=f"Courier {telegram_id}", role="COURIER")
    courier = Courier(
        user=user,
        full_name=f"Courier {telegram_id}",
        phone="+79111111111",
        status=status,
        is_active=status == "ACTIVE",
    )
    db.add_all([user, courier])
    await db.commit()
    return courier


async def add_order(db, shop: Shop, stops: list[dict] | None = None, status="NEW", courier=None) -> Order:
    stops = stops or [{"delivery_price": Decimal(400)}]
    order = Order(
        shop_id=shop.id,
        delivery_date=date(2026, 5, 1),
        status=status,
        courier_id=courier.id if courier else None,
    )
    order.stops = [
        OrderStop(
            stop_number=number,
            recipient_name=fields.get("recipient_name", f"Recipient {number}"),
            recipient_phone=fields.get("recipient_phone", "+79222222222"),
            delivery_address=fields.get("delivery_address", f"Lenina {40 + number}, Chelyabinsk"),
            latitude=fields.get("latitude"),
            longitude=fields.get("longitude"),
            distance_km=fields.get("distance_km"),
            delivery_price=fields["delivery_price"],
            comment=fields.get("comment"),
        )
        for number, fields in enumerate(stops, start=1)
    ]
    order.recalculate_total()
    order.events = [OrderEvent(to_status=status, actor_type="SYSTEM")]
    db.add(order)
    await db.commit()
    return order


# ── Gateway fakes ──────────────────────────────────────────

class FakeGeocoder:
    """Resolves addresses from a fixed table; unknown addresses are unresolved."""

    def __init__(self, known: dict[str, GeocodeResult] | None = None):
        self.known = known or {}
        self.calls: list[str] = []

    async def resolve(self, address: str) -> GeocodeResult | None:
        self.calls.append(address)
        return self.known.get(address)


class FakeRouter:
    """Road distance from a fixed table keyed by destination; None means routing is down."""

    def __init__(self, distances: dict[tuple[float, float], float] | None = None, default: float | None = None):
        self.distances = distances or {}
        self.default = default
        self.calls: list[tuple[tuple[float, float], tuple[float, float]]] = []

    async def road_distance(self, lat1, lng1, lat2, lng2):
        self.calls.append(((lat1, lng1), (lat2, lng2)))
        return self.distances.get((lat2, lng2), self.default)


def geo(lat: float, lng: float, address: str = "Челябинск, ул Ленина, д 44", region: str = "Челябинская") -> GeocodeResult:
    return GeocodeResult(latitude=lat, longitude=lng, full_address=address, city="Челябинск", region=region)


# ── Bot fixtures ───────────────────────────────────────────

@pytest.fixture
def bot_settings():
    return BotSettings(
        TELEGRAM_BOT_TOKEN="",
        ADMIN_TELEGRAM_ID="999",
        ORDER_CUTOFF_HOUR=21,
        TIMEZONE="Asia/Yekaterinburg",
    )


@pytest.fixture
def api():
    """ApiClient stand-in returning a registered, active shop by default."""
    client = AsyncMock()
    client.get_shop.return_value = {"id": "shop-1", "shop_name": "Rose Garden", "is_active": True}
    client.get_courier.return_value = None
    client.get_tariffs.return_value = {"min_price": 300, "description": "• 0–3 km — 300 ₽"}
    return client


def morning_clock():
    # 10:00 in Yekaterinburg
    return datetime(2026, 5, 1, 5, 0, tzinfo=timezone.utc)


def late_clock():
    # 22:30 in Yekaterinburg
    return datetime(2026, 5, 1, 17, 30, tzinfo=timezone.utc)


@pytest.fixture
def ctx(api, bot_settings):
    return FlowContext(api=api, settings=bot_settings, clock=morning_clock)


@pytest.fixture
def sessions():
    return SessionStore(MemoryStorage(), bot_id=42)
