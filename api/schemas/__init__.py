"""Pydantic schemas for API request/response models."""

from __future__ import annotations
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field


# ── Enums ──────────────────────────────────────────────────

class UserRole(str, Enum):
    SHOP = "SHOP"
    COURIER = "COURIER"


class OrderStatus(str, Enum):
    NEW = "NEW"
    ACCEPTED = "ACCEPTED"
    PICKED_UP = "PICKED_UP"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class StopStatus(str, Enum):
    PENDING = "PENDING"
    DELIVERED = "DELIVERED"


class CourierStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"


class ClaimOutcome(str, Enum):
    CLAIMED = "CLAIMED"
    UNAVAILABLE = "UNAVAILABLE"            # someone else won, or order no longer NEW
    NOT_FOUND = "NOT_FOUND"
    COURIER_NOT_FOUND = "COURIER_NOT_FOUND"
    COURIER_INACTIVE = "COURIER_INACTIVE"
    CAP_EXCEEDED = "CAP_EXCEEDED"


class CancelOutcome(str, Enum):
    CANCELLED = "CANCELLED"
    UNAVAILABLE = "UNAVAILABLE"
    NOT_FOUND = "NOT_FOUND"


class EditOutcome(str, Enum):
    UPDATED = "UPDATED"
    NOT_EDITABLE = "NOT_EDITABLE"
    NOT_FOUND = "NOT_FOUND"


class QuoteStatus(str, Enum):
    OK = "OK"
    UNRESOLVED = "UNRESOLVED"
    OUT_OF_ZONE = "OUT_OF_ZONE"
    NO_ANCHOR = "NO_ANCHOR"


# ── User Schemas ───────────────────────────────────────────

class UserCreate(BaseModel):
    telegram_id: int
    full_name: str | None = None
    phone: str | None = None
    telegram_username: str | None = None


class UserRoleUpdate(BaseModel):
    role: UserRole


class UserResponse(BaseModel):
    id: uuid.UUID
    telegram_id: int
    full_name: str | None
    phone: str | None
    telegram_username: str | None
    role: UserRole | None
    created_at: datetime

    class Config:
        from_attributes = True


# ── Shop Schemas ───────────────────────────────────────────

class ShopCreate(BaseModel):
    telegram_id: int
    shop_name: str = Field(..., min_length=2, max_length=255)
    pickup_address: str = Field(..., min_length=5, max_length=500)
    phone: str = Field(..., min_length=5, max_length=50)


class ShopResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    shop_name: str
    pickup_address: str
    phone: str | None
    latitude: float | None
    longitude: float | None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ── Courier Schemas ────────────────────────────────────────

class CourierCreate(BaseModel):
    telegram_id: int
    full_name: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=5, max_length=50)
    passport_photo_file_id: str


class CourierResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    full_name: str
    phone: str
    status: CourierStatus
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ── Pricing Schemas ────────────────────────────────────────

class TariffStep(BaseModel):
    max_km: float
    price: int


class TariffsResponse(BaseModel):
    tariffs: list[TariffStep]
    min_price: int
    description: str


class QuoteRequest(BaseModel):
    address: str = Field(..., min_length=1, max_length=500)
    anchor_lat: float | None = Field(None, ge=-90, le=90)
    anchor_lng: float | None = Field(None, ge=-180, le=180)
    # When no explicit anchor is given, the shop's pickup point is used
    shop_id: uuid.UUID | None = None


class QuoteResponse(BaseModel):
    status: QuoteStatus
    normalized_address: str
    full_address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    region: str | None = None
    distance_km: float | None = None
    price: int | None = None
    used_fallback: bool = False


# ── Order Schemas ──────────────────────────────────────────

class StopCreate(BaseModel):
    recipient_name: str = Field(..., min_length=2, max_length=255)
    recipient_phone: str = Field(..., min_length=5, max_length=50)
    delivery_address: str = Field(..., min_length=10, max_length=500)
    latitude: float | None = None
    longitude: float | None = None
    distance_km: float | None = None
    delivery_price: Decimal = Field(..., gt=0)
    comment: str | None = None


class OrderCreate(BaseModel):
    shop_telegram_id: int
    delivery_date: date
    stops: list[StopCreate] = Field(..., min_length=1)


class StopResponse(BaseModel):
    stop_number: int
    recipient_name: str
    recipient_phone: str
    delivery_address: str
    latitude: float | None
    longitude: float | None
    distance_km: float | None
    delivery_price: Decimal
    comment: str | None
    stop_status: StopStatus
    delivered_at: datetime | None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: uuid.UUID
    shop_id: uuid.UUID
    courier_id: uuid.UUID | None
    status: OrderStatus
    delivery_date: date
    total_price: Decimal
    is_multi_stop: bool
    stops: list[StopResponse]
    created_at: datetime
    accepted_at: datetime | None
    picked_up_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None

    class Config:
        from_attributes = True


class ClaimRequest(BaseModel):
    courier_telegram_id: int


class ClaimResponse(BaseModel):
    outcome: ClaimOutcome


class CancelResponse(BaseModel):
    outcome: CancelOutcome


class AdvanceRequest(BaseModel):
    courier_telegram_id: int
    target: OrderStatus


class AdvanceResponse(BaseModel):
    updated: bool
    status: OrderStatus | None = None


class StopUpdate(BaseModel):
    """Exactly one field is applied; address wins over phone, phone over comment."""
    delivery_address: str | None = Field(None, min_length=10, max_length=500)
    recipient_phone: str | None = Field(None, min_length=5, max_length=50)
    comment: str | None = None
    clear_comment: bool = False


class DateUpdate(BaseModel):
    delivery_date: date


class EditResponse(BaseModel):
    outcome: EditOutcome
    address_resolved: bool | None = None
    total_price: Decimal | None = None
