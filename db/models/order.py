"""
db/models/order.py

Persisted canonical order records, scoped per owner.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class Order(TimestampMixin, Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Opaque owner identity supplied by the session layer",
    )
    order_code: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Order number from the source platform",
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        server_default="unknown",
        comment="colormi, tabechoku, unknown",
    )
    category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("order_categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="price_non_negative"),
        Index("uq_orders_owner_order_code", "owner_id", "order_code", unique=True),
        Index("ix_orders_owner_order_date", "owner_id", "order_date"),
        Index("ix_orders_delivery_date", "delivery_date"),
        Index("ix_orders_category_id", "category_id"),
    )
