"""Order edit dialog for orders still in NEW status."""

from enum import Enum

from bot.states.base import DialogState, FlowType


class OrderEditStep(str, Enum):
    STOP = "stop"
    FIELD = "field"
    VALUE = "value"
    DATE = "date"


class EditField(str, Enum):
    ADDRESS = "address"
    PHONE = "phone"
    COMMENT = "comment"
    DATE = "date"


class OrderEditState(DialogState):
    flow: FlowType = FlowType.ORDER_EDIT
    step: OrderEditStep = OrderEditStep.FIELD
    order_id: str
    stop_count: int
    stop_number: int | None = None
    field: EditField | None = None
