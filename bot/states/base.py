"""Dialog state shared by every flow."""

from enum import Enum

from pydantic import BaseModel


class FlowType(str, Enum):
    ORDER_CREATION = "order_creation"
    ORDER_EDIT = "order_edit"
    SHOP_REGISTRATION = "shop_registration"
    COURIER_REGISTRATION = "courier_registration"
    ORDER_SELECTION = "order_selection"


class DialogState(BaseModel):
    """Where a user is inside one flow, plus the fields accepted so far."""
    flow: FlowType
    step: str

    @property
    def fsm_state(self) -> str:
        step = self.step.value if isinstance(self.step, Enum) else self.step
        return f"{self.flow.value}:{step}"
