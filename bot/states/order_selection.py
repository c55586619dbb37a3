"""Picking one order out of the shop's recent-orders list."""

from enum import Enum

from pydantic import Field

from bot.states.base import DialogState, FlowType


class OrderSelectionStep(str, Enum):
    CHOOSE = "choose"


class OrderSelectionState(DialogState):
    flow: FlowType = FlowType.ORDER_SELECTION
    step: OrderSelectionStep = OrderSelectionStep.CHOOSE
    # Order ids in the order they were listed to the user
    order_ids: list[str] = Field(default_factory=list)
