"""create order_categories and orders tables

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "order_categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_order_categories_owner_name",
        "order_categories",
        ["owner_id", "name"],
        unique=True,
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("order_code", sa.String(length=255), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=32), server_default="unknown", nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("price >= 0", name="ck_orders_price_non_negative"),
        sa.ForeignKeyConstraint(["category_id"], ["order_categories.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_orders_owner_order_code",
        "orders",
        ["owner_id", "order_code"],
        unique=True,
    )
    op.create_index(
        "ix_orders_owner_order_date",
        "orders",
        ["owner_id", "order_date"],
        unique=False,
    )
    op.create_index("ix_orders_delivery_date", "orders", ["delivery_date"], unique=False)
    op.create_index("ix_orders_category_id", "orders", ["category_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_orders_category_id", table_name="orders")
    op.drop_index("ix_orders_delivery_date", table_name="orders")
    op.drop_index("ix_orders_owner_order_date", table_name="orders")
    op.drop_index("uq_orders_owner_order_code", table_name="orders")
    op.drop_table("orders")
    op.drop_index("uq_order_categories_owner_name", table_name="order_categories")
    op.drop_table("order_categories")
