"""Database model definitions."""

from src.models.base import Base
from src.models.order import Order, OrderItem, OrderStatus, PaymentMethod
from src.models.product import Product

__all__ = [
    "Base",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "Product",
]
