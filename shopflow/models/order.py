# shopflow/models/order.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order.

    total_amount is always computed server-side from stored prices.
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total_nonneg"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'shipped', 'delivered')",
            name="ck_orders_status",
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )

    total_amount: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Authoritative order total",
    )

    # pending | confirmed | shipped | delivered
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    unit_price is a snapshot taken at order time; later product price
    changes do not touch it.
    """

    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_pos"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_price_nonneg"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        ondelete="CASCADE",
        index=True,
    )

    product_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="products.id",
        ondelete="SET NULL",
        index=True,
    )

    quantity: int = Field(description="Quantity ordered (>=1)")

    unit_price: Decimal = Field(
        max_digits=10,
        decimal_places=2,
        description="Unit price at time of order",
    )
