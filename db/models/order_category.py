"""
db/models/order_category.py

Owner-defined grouping that imported orders can be attached to.
"""

from __future__ import annotations

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class OrderCategory(TimestampMixin, Base):
    __tablename__ = "order_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    __table_args__ = (
        Index("uq_order_categories_owner_name", "owner_id", "name", unique=True),
    )
