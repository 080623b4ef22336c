# shopflow/schemas/cart.py
"""
Cart snapshot shapes.

Version history:
  1  bare JSON list of {"product": {...}, "quantity": n}
     (the browser's local-storage format, key 'shopflow_cart_v1')
  2  {"version": 2, "items": [...]}  (current)

`migrate_snapshot` upgrades older payloads and refuses anything it
cannot read; nothing is silently dropped.
"""
import json
import uuid
from typing import Any

from pydantic import ConfigDict, ValidationError
from sqlmodel import SQLModel, Field

CART_SNAPSHOT_VERSION = 2


class CartSnapshotError(ValueError):
    """Raised when a persisted cart snapshot cannot be read."""


class ProductSnapshot(SQLModel):
    """
    Product fields as last seen by the cart.
    Prices and stock here are advisory and may be stale.
    """

    model_config = ConfigDict(extra="ignore")

    id: uuid.UUID
    name: str
    price: float = Field(ge=0)
    stock: int = Field(ge=0)
    image_url: str | None = None
    category: str | None = None


class CartEntry(SQLModel):
    product: ProductSnapshot
    quantity: int = Field(gt=0)


class CartSnapshot(SQLModel):
    """Serializable cart state."""

    model_config = ConfigDict(extra="forbid")

    version: int = CART_SNAPSHOT_VERSION
    items: list[CartEntry] = []


def migrate_snapshot(raw: Any) -> CartSnapshot:
    """
    Parse a persisted snapshot of any known version into the current shape.

    Accepts the decoded JSON value or a JSON string.

    Raises:
        CartSnapshotError: unparseable JSON, unknown version, or bad items.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CartSnapshotError(f"Cart snapshot is not valid JSON: {exc}")

    if isinstance(raw, list):
        # v1: the list of entries itself
        raw = {"version": 1, "items": raw}

    if not isinstance(raw, dict):
        raise CartSnapshotError("Cart snapshot must be a list or an object")

    version = raw.get("version")
    if version not in (1, CART_SNAPSHOT_VERSION):
        raise CartSnapshotError(f"Unsupported cart snapshot version: {version!r}")

    try:
        return CartSnapshot.model_validate(
            {"version": CART_SNAPSHOT_VERSION, "items": raw.get("items", [])}
        )
    except ValidationError as exc:
        raise CartSnapshotError(f"Invalid cart snapshot: {exc.error_count()} error(s)")


# ---- API payloads ----


class CartItemAdd(SQLModel):
    """
    Payload for adding to cart.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart entry.
    A quantity <= 0 removes the entry.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int


class CartLineRead(SQLModel):
    product: ProductSnapshot
    quantity: int
    line_total: float


class CartSummary(SQLModel):
    """
    Full cart response with advisory totals.
    """

    version: int
    items: list[CartLineRead]
    item_count: int
    total: float
