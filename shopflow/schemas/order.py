# shopflow/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel

OrderStatus = Literal["pending", "confirmed", "shipped", "delivered"]

# Forward-only lifecycle, one step at a time
STATUS_FLOW: dict[str, set[str]] = {
    "pending": {"confirmed"},
    "confirmed": {"shipped"},
    "shipped": {"delivered"},
    "delivered": set(),
}


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID
    status: OrderStatus
    total_amount: float
    created_at: datetime


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID | None
    quantity: int
    unit_price: float
    line_total: float


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderStatusUpdate(SQLModel):
    """
    Payload to move an order along its lifecycle.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
