"""
app/repositories package marker.
"""

from app.repositories.category_repository import CategoryRepository
from app.repositories.order_repository import (
    OrderPersistenceError,
    OrderRepository,
    OrderStore,
    OrderStoreFactory,
    order_store_scope,
)

__all__ = [
    "CategoryRepository",
    "OrderPersistenceError",
    "OrderRepository",
    "OrderStore",
    "OrderStoreFactory",
    "order_store_scope",
]
