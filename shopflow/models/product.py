# shopflow/models/product.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field

DEFAULT_CATEGORY = "General"


class Product(SQLModel, table=True):
    """
    Product catalog entry.

    Price and stock are guarded by check constraints so that a
    conditional stock decrement can never drive stock below zero.
    """

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_nonneg"),
        CheckConstraint("stock >= 0", name="ck_products_stock_nonneg"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name of the product",
    )

    description: str = Field(
        default="",
        description="Long description",
    )

    price: Decimal = Field(
        default=Decimal("0"),
        max_digits=10,
        decimal_places=2,
        description="Unit price",
    )

    stock: int = Field(
        default=0,
        description="How many units currently in stock",
    )

    image_url: str | None = Field(
        default=None,
        description="Public image URL",
    )

    category: str = Field(
        default=DEFAULT_CATEGORY,
        max_length=100,
        index=True,
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
