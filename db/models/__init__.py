"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.order import Order
from db.models.order_category import OrderCategory

__all__ = [
    "Order",
    "OrderCategory",
]
