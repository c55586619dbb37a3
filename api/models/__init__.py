from api.models.user import User
from api.models.shop import Shop
from api.models.courier import Courier
from api.models.order import Order, OrderStop, OrderEvent

__all__ = [
    "User", "Shop", "Courier", "Order", "OrderStop", "OrderEvent",
]
