"""Shop and courier registration dialogs."""

from enum import Enum

from bot.states.base import DialogState, FlowType


class ShopRegistrationStep(str, Enum):
    NAME = "name"
    ADDRESS = "address"
    CONTACT = "contact"


class ShopRegistrationState(DialogState):
    flow: FlowType = FlowType.SHOP_REGISTRATION
    step: ShopRegistrationStep = ShopRegistrationStep.NAME
    shop_name: str | None = None
    pickup_address: str | None = None


class CourierRegistrationStep(str, Enum):
    FULL_NAME = "full_name"
    CONTACT = "contact"
    PHOTO = "photo"


class CourierRegistrationState(DialogState):
    flow: FlowType = FlowType.COURIER_REGISTRATION
    step: CourierRegistrationStep = CourierRegistrationStep.FULL_NAME
    full_name: str | None = None
    phone: str | None = None
    photo_file_id: str | None = None
