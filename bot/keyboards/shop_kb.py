"""Inline keyboard builders for shop interactions."""

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

SHOP_NEW_ORDER = "shop:new_order"
SHOP_MY_ORDERS = "shop:my_orders"


def shop_menu_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="📦 Create order", callback_data=SHOP_NEW_ORDER)],
        [InlineKeyboardButton(text="📋 My orders", callback_data=SHOP_MY_ORDERS)],
    ])
