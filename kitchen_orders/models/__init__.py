# kitchen_orders/models/__init__.py
from .restaurant import Restaurant
from .user import User
from .catalog import Category, Item, Supplier, UnitOfMeasure, WEEKDAYS
from .order import Order, OrderLine, DEFAULT_ORDER_STATUS

# Export all models
__all__ = [
    "Restaurant",
    "User",
    "Supplier",
    "Category",
    "Item",
    "UnitOfMeasure",
    "WEEKDAYS",
    "Order",
    "OrderLine",
    "DEFAULT_ORDER_STATUS",
]
