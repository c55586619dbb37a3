"""HTTP-level tests: FastAPI app over an in-process transport with a SQLite session."""

from decimal import Decimal

import httpx
import pytest_asyncio

from api.db.database import get_db
from api.main import app
from api.routers.pricing import get_pipeline
from api.services.quote import PricingPipeline
from conftest import FakeGeocoder, FakeRouter, geo

SHOP_TG = 1001
COURIER_TG = 2001

STOP = {
    "recipient_name": "Anna",
    "recipient_phone": "+79001112233",
    "delivery_address": "Lenina 44, entrance 2, apt 15",
    "latitude": 55.17,
    "longitude": 61.39,
    "distance_km": 4.6,
    "delivery_price": 400,
}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_db():
        async with session_factory() as session:
            yield session

    geocoder = FakeGeocoder({
        "Kirova 10, Chelyabinsk": geo(55.16, 61.40),
        "Lenina 44": geo(55.17, 61.39),
        "Pobedy 100": geo(55.20, 61.35),
    })
    pipeline = PricingPipeline(geocoder, FakeRouter(default=4.6), allowed_region="Челябинская область")

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


async def _register_shop(client, active=True) -> dict:
    await client.post("/api/users/", json={"telegram_id": SHOP_TG, "full_name": "Rose Garden"})
    resp = await client.post("/api/shops/", json={
        "telegram_id": SHOP_TG,
        "shop_name": "Rose Garden",
        "pickup_address": "Kirova 10, Chelyabinsk",
        "phone": "+79000000000",
    })
    assert resp.status_code == 200
    shop = resp.json()
    if active:
        resp = await client.patch(f"/api/admin/shops/{shop['id']}/activate")
        shop = resp.json()
    return shop


async def _register_courier(client, telegram_id=COURIER_TG, active=True) -> dict:
    await client.post("/api/users/", json={"telegram_id": telegram_id})
    resp = await client.post("/api/couriers/", json={
        "telegram_id": telegram_id,
        "full_name": "Ivan Petrov",
        "phone": "+79111111111",
        "passport_photo_file_id": "file-1",
    })
    courier = resp.json()
    if active:
        courier = (await client.patch(f"/api/admin/couriers/{courier['id']}/activate")).json()
    return courier


async def _create_order(client, stops=None) -> dict:
    resp = await client.post("/api/orders/", json={
        "shop_telegram_id": SHOP_TG,
        "delivery_date": "2026-05-01",
        "stops": stops or [STOP],
    })
    assert resp.status_code == 200
    return resp.json()


async def test_health(client):
    resp = await client.get("/health")
    assert resp.json()["status"] == "healthy"


async def test_user_create_is_idempotent(client):
    first = (await client.post("/api/users/", json={"telegram_id": 42})).json()
    second = (await client.post("/api/users/", json={"telegram_id": 42, "full_name": "Other"})).json()
    assert first["id"] == second["id"]
    assert second["role"] is None

    resp = await client.patch("/api/users/42/role", json={"role": "COURIER"})
    assert resp.json()["role"] == "COURIER"


async def test_shop_registration_starts_inactive(client):
    shop = await _register_shop(client, active=False)
    assert shop["is_active"] is False

    duplicate = await client.post("/api/shops/", json={
        "telegram_id": SHOP_TG, "shop_name": "Again", "pickup_address": "Kirova 10, Chelyabinsk", "phone": "+79000000000",
    })
    assert duplicate.status_code == 409

    user = (await client.get(f"/api/users/{SHOP_TG}")).json()
    assert user["role"] == "SHOP"


async def test_inactive_shop_cannot_order(client):
    await _register_shop(client, active=False)
    resp = await client.post("/api/orders/", json={
        "shop_telegram_id": SHOP_TG, "delivery_date": "2026-05-01", "stops": [STOP],
    })
    assert resp.status_code == 403


async def test_order_validation(client):
    await _register_shop(client)
    resp = await client.post("/api/orders/", json={
        "shop_telegram_id": SHOP_TG, "delivery_date": "2026-05-01", "stops": [],
    })
    assert resp.status_code == 422

    resp = await client.post("/api/orders/", json={
        "shop_telegram_id": SHOP_TG, "delivery_date": "2026-05-01",
        "stops": [{**STOP, "delivery_address": "short"}],
    })
    assert resp.status_code == 422


async def test_tariffs(client):
    body = (await client.get("/api/pricing/tariffs")).json()
    assert len(body["tariffs"]) == 14
    assert body["min_price"] == 300
    assert body["tariffs"][-1] == {"max_km": 30.0, "price": 2000}


async def test_quote_geocodes_shop_on_first_use(client):
    shop = await _register_shop(client)
    assert shop["latitude"] is None

    resp = await client.post("/api/pricing/quote", json={"address": "Lenina 44, entrance 2", "shop_id": shop["id"]})
    body = resp.json()
    assert body["status"] == "OK"
    assert body["normalized_address"] == "Lenina 44"
    assert body["price"] == 400

    shop = (await client.get(f"/api/shops/telegram/{SHOP_TG}")).json()
    assert shop["latitude"] == 55.16


async def test_quote_with_explicit_anchor_and_unresolved(client):
    ok = (await client.post("/api/pricing/quote", json={
        "address": "Pobedy 100", "anchor_lat": 55.17, "anchor_lng": 61.39,
    })).json()
    assert ok["status"] == "OK"

    unresolved = (await client.post("/api/pricing/quote", json={"address": "Unknown lane 5"})).json()
    assert unresolved["status"] == "UNRESOLVED"
    assert unresolved["price"] is None


async def test_order_lifecycle(client):
    await _register_shop(client)
    order = await _create_order(client, stops=[STOP, {**STOP, "recipient_name": "Boris", "delivery_price": 550}])
    assert order["status"] == "NEW"
    assert order["is_multi_stop"] is True
    assert Decimal(order["total_price"]) == Decimal(950)

    available = (await client.get("/api/orders/available")).json()
    assert [o["id"] for o in available] == [order["id"]]

    pending = await _register_courier(client, active=False)
    assert pending["status"] == "PENDING"
    claim = await client.post(f"/api/orders/{order['id']}/claim", json={"courier_telegram_id": COURIER_TG})
    assert claim.json()["outcome"] == "COURIER_INACTIVE"

    await client.patch(f"/api/admin/couriers/{pending['id']}/activate")
    claim = await client.post(f"/api/orders/{order['id']}/claim", json={"courier_telegram_id": COURIER_TG})
    assert claim.json()["outcome"] == "CLAIMED"

    await _register_courier(client, telegram_id=2002)
    late = await client.post(f"/api/orders/{order['id']}/claim", json={"courier_telegram_id": 2002})
    assert late.json()["outcome"] == "UNAVAILABLE"

    cancel = await client.post(f"/api/orders/{order['id']}/cancel")
    assert cancel.json()["outcome"] == "UNAVAILABLE"

    assert (await client.get("/api/orders/available")).json() == []
    carried = (await client.get(f"/api/orders/courier/{COURIER_TG}")).json()
    assert [o["id"] for o in carried] == [order["id"]]

    picked = await client.post(
        f"/api/orders/{order['id']}/advance",
        json={"courier_telegram_id": COURIER_TG, "target": "PICKED_UP"},
    )
    assert picked.json() == {"updated": True, "status": "PICKED_UP"}

    for number in (1, 2):
        resp = await client.post(
            f"/api/orders/{order['id']}/stops/{number}/delivered",
            json={"courier_telegram_id": COURIER_TG},
        )
        assert resp.status_code == 200
    assert resp.json()["status"] == "DELIVERED"

    again = await client.post(
        f"/api/orders/{order['id']}/stops/1/delivered", json={"courier_telegram_id": COURIER_TG},
    )
    assert again.status_code == 409


async def test_claim_over_cap_via_api(client):
    await _register_shop(client)
    await _register_courier(client)
    orders = [await _create_order(client) for _ in range(4)]

    for order in orders[:3]:
        claim = await client.post(f"/api/orders/{order['id']}/claim", json={"courier_telegram_id": COURIER_TG})
        assert claim.json()["outcome"] == "CLAIMED"

    refused = await client.post(f"/api/orders/{orders[-1]['id']}/claim", json={"courier_telegram_id": COURIER_TG})
    assert refused.status_code == 200
    assert refused.json()["outcome"] == "CAP_EXCEEDED"
    assert (await client.get(f"/api/orders/{orders[-1]['id']}")).json()["status"] == "NEW"


async def test_edit_endpoints(client):
    await _register_shop(client)
    order = await _create_order(client)

    resp = await client.patch(f"/api/orders/{order['id']}/stops/1", json={"delivery_address": "Pobedy 100, apt 5"})
    body = resp.json()
    assert body["outcome"] == "UPDATED"
    assert body["address_resolved"] is True
    assert Decimal(body["total_price"]) == Decimal(400)

    resp = await client.patch(f"/api/orders/{order['id']}/stops/1", json={"comment": "ring twice"})
    assert resp.json()["outcome"] == "UPDATED"

    resp = await client.patch(f"/api/orders/{order['id']}/stops/1", json={})
    assert resp.status_code == 422

    resp = await client.patch(f"/api/orders/{order['id']}/date", json={"delivery_date": "2026-05-02"})
    assert resp.json()["outcome"] == "UPDATED"

    updated = (await client.get(f"/api/orders/{order['id']}")).json()
    assert updated["delivery_date"] == "2026-05-02"
    assert updated["stops"][0]["comment"] == "ring twice"
    assert updated["stops"][0]["delivery_address"] == "Pobedy 100, apt 5"


async def test_cancel_new_order_via_api(client):
    await _register_shop(client)
    order = await _create_order(client)

    resp = await client.post(f"/api/orders/{order['id']}/cancel")
    assert resp.json()["outcome"] == "CANCELLED"
    shop_orders = (await client.get(f"/api/orders/shop/{SHOP_TG}")).json()
    assert shop_orders[0]["status"] == "CANCELLED"


async def test_unknown_order_is_404(client):
    resp = await client.get("/api/orders/00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404
