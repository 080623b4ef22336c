# shopflow/schemas/product.py
import math
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation

from pydantic import ConfigDict
from sqlmodel import SQLModel

PRICE_ERROR = "Enter a valid price (≥ 0)."
STOCK_ERROR = "Enter a valid stock quantity (integer ≥ 0)."

# products.price is Numeric(10, 2)
MAX_PRICE = Decimal("100000000")


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    name: str
    description: str
    price: float
    stock: int
    image_url: str | None = None
    category: str
    created_at: datetime


class ProductForm(SQLModel):
    """
    Admin create/update form.

    price and stock are accepted as raw form values (strings or numbers);
    they are parsed by `parse_price` / `parse_stock` before the upsert.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    price: str | int | float
    stock: str | int | float
    image_url: str | None = None
    category: str = ""


def parse_price(raw: str | int | float) -> Decimal:
    """
    Parse a price form value.

    Accepts any finite number >= 0 that fits the price column, rounded to cents.

    Raises:
        ValueError: with the user-facing message.
    """
    if isinstance(raw, bool):
        raise ValueError(PRICE_ERROR)
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError(PRICE_ERROR)
    if not value.is_finite() or value < 0:
        raise ValueError(PRICE_ERROR)
    try:
        value = value.quantize(Decimal("0.01"))
    except InvalidOperation:
        raise ValueError(PRICE_ERROR)
    if value >= MAX_PRICE:
        raise ValueError(PRICE_ERROR)
    return value


def parse_stock(raw: str | int | float) -> int:
    """
    Parse a stock form value: an integer >= 0 ("3" and 3.0 are fine, "3.5" is not).

    Raises:
        ValueError: with the user-facing message.
    """
    if isinstance(raw, bool):
        raise ValueError(STOCK_ERROR)
    if isinstance(raw, int):
        value = raw
    else:
        try:
            number = float(str(raw).strip())
        except ValueError:
            raise ValueError(STOCK_ERROR)
        if not math.isfinite(number) or not number.is_integer():
            raise ValueError(STOCK_ERROR)
        value = int(number)
    if value < 0:
        raise ValueError(STOCK_ERROR)
    return value
