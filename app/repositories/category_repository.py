"""
app/repositories/category_repository.py

Lookups for owner-scoped order categories.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.order_category import OrderCategory


class CategoryRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_owned(self, owner_id: str, category_id: int) -> OrderCategory | None:
        """
        Return the category only when it belongs to ``owner_id``.
        """

        stmt = select(OrderCategory).where(
            OrderCategory.id == category_id,
            OrderCategory.owner_id == owner_id,
        )
        return self._session.scalars(stmt).first()

    def belongs_to(self, owner_id: str, category_id: int) -> bool:
        return self.get_owned(owner_id, category_id) is not None
