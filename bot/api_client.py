"""
Backend API client for the bot.

Every call returns the decoded JSON body, or None when the backend is
unreachable or answers with an error status. Callers turn None into a
user-facing message.
"""

import logging
from datetime import date

import httpx

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(self, base_url: str, timeout: float = 10.0, http: httpx.AsyncClient | None = None):
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def close(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, endpoint: str, **kwargs) -> dict | list | None:
        """Helper to call FastAPI backend."""
        try:
            resp = await self._http.request(method, endpoint, params=kwargs.get("params"), json=kwargs.get("json"))
        except httpx.HTTPError as e:
            logger.error("API call %s %s failed: %s", method, endpoint, e)
            return None
        if resp.status_code in (200, 201):
            return resp.json()
        if resp.status_code == 404:
            logger.info("API %s %s: not found", method, endpoint)
        else:
            logger.warning("API error %s %s: %s - %s", method, endpoint, resp.status_code, resp.text)
        return None

    # ── Users ──────────────────────────────────────────────

    async def ensure_user(self, telegram_id: int, full_name: str | None, username: str | None) -> dict | None:
        return await self._call("POST", "/api/users/", json={
            "telegram_id": telegram_id,
            "full_name": full_name,
            "telegram_username": username,
        })

    async def get_user(self, telegram_id: int) -> dict | None:
        return await self._call("GET", f"/api/users/{telegram_id}")

    async def set_role(self, telegram_id: int, role: str) -> dict | None:
        return await self._call("PATCH", f"/api/users/{telegram_id}/role", json={"role": role})

    # ── Shops & couriers ───────────────────────────────────

    async def get_shop(self, telegram_id: int) -> dict | None:
        return await self._call("GET", f"/api/shops/telegram/{telegram_id}")

    async def register_shop(self, telegram_id: int, shop_name: str, pickup_address: str, phone: str) -> dict | None:
        return await self._call("POST", "/api/shops/", json={
            "telegram_id": telegram_id,
            "shop_name": shop_name,
            "pickup_address": pickup_address,
            "phone": phone,
        })

    async def get_courier(self, telegram_id: int) -> dict | None:
        return await self._call("GET", f"/api/couriers/telegram/{telegram_id}")

    async def register_courier(self, telegram_id: int, full_name: str, phone: str, photo_file_id: str) -> dict | None:
        return await self._call("POST", "/api/couriers/", json={
            "telegram_id": telegram_id,
            "full_name": full_name,
            "phone": phone,
            "passport_photo_file_id": photo_file_id,
        })

    # ── Pricing ────────────────────────────────────────────

    async def get_tariffs(self) -> dict | None:
        return await self._call("GET", "/api/pricing/tariffs")

    async def quote(
        self,
        address: str,
        anchor: tuple[float, float] | None = None,
        shop_id: str | None = None,
    ) -> dict | None:
        payload: dict = {"address": address}
        if anchor is not None:
            payload["anchor_lat"], payload["anchor_lng"] = anchor
        elif shop_id is not None:
            payload["shop_id"] = shop_id
        return await self._call("POST", "/api/pricing/quote", json=payload)

    # ── Orders ─────────────────────────────────────────────

    async def create_order(self, shop_telegram_id: int, delivery_date: date, stops: list[dict]) -> dict | None:
        return await self._call("POST", "/api/orders/", json={
            "shop_telegram_id": shop_telegram_id,
            "delivery_date": delivery_date.isoformat(),
            "stops": stops,
        })

    async def get_order(self, order_id: str) -> dict | None:
        return await self._call("GET", f"/api/orders/{order_id}")

    async def list_shop_orders(self, telegram_id: int) -> list | None:
        return await self._call("GET", f"/api/orders/shop/{telegram_id}")

    async def list_available_orders(self) -> list | None:
        return await self._call("GET", "/api/orders/available")

    async def list_courier_orders(self, telegram_id: int) -> list | None:
        return await self._call("GET", f"/api/orders/courier/{telegram_id}")

    async def claim_order(self, order_id: str, courier_telegram_id: int) -> str | None:
        result = await self._call("POST", f"/api/orders/{order_id}/claim", json={
            "courier_telegram_id": courier_telegram_id,
        })
        return result["outcome"] if result else None

    async def cancel_order(self, order_id: str) -> str | None:
        result = await self._call("POST", f"/api/orders/{order_id}/cancel")
        return result["outcome"] if result else None

    async def advance_order(self, order_id: str, courier_telegram_id: int, target: str) -> bool | None:
        result = await self._call("POST", f"/api/orders/{order_id}/advance", json={
            "courier_telegram_id": courier_telegram_id,
            "target": target,
        })
        return result["updated"] if result else None

    async def mark_stop_delivered(self, order_id: str, stop_number: int, courier_telegram_id: int) -> dict | None:
        return await self._call("POST", f"/api/orders/{order_id}/stops/{stop_number}/delivered", json={
            "courier_telegram_id": courier_telegram_id,
        })

    async def update_stop(self, order_id: str, stop_number: int, changes: dict) -> dict | None:
        return await self._call("PATCH", f"/api/orders/{order_id}/stops/{stop_number}", json=changes)

    async def update_delivery_date(self, order_id: str, delivery_date: date) -> dict | None:
        return await self._call("PATCH", f"/api/orders/{order_id}/date", json={
            "delivery_date": delivery_date.isoformat(),
        })
