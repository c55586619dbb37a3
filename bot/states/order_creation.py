"""Order creation dialog: date, then one or more stops."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from bot.states.base import DialogState, FlowType


class OrderCreationStep(str, Enum):
    DATE = "date"
    RECIPIENT_NAME = "recipient_name"
    RECIPIENT_PHONE = "recipient_phone"
    ADDRESS = "address"
    PRICE_CONFIRM = "price_confirm"
    PRICE_MANUAL = "price_manual"
    STOP_COMMENT = "stop_comment"
    ADD_STOP = "add_stop"


class StopDraft(BaseModel):
    number: int
    recipient_name: str | None = None
    recipient_phone: str | None = None
    address: str | None = None
    resolved_address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    distance_km: float | None = None
    suggested_price: int | None = None
    price: int | None = None
    comment: str | None = None

    @property
    def point(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return self.latitude, self.longitude


class OrderCreationState(DialogState):
    flow: FlowType = FlowType.ORDER_CREATION
    step: OrderCreationStep = OrderCreationStep.DATE
    shop_id: str
    min_price: int
    tariff_text: str = ""
    delivery_date: date | None = None
    stops: list[StopDraft] = Field(default_factory=list)

    @property
    def current_stop(self) -> StopDraft | None:
        return self.stops[-1] if self.stops else None
