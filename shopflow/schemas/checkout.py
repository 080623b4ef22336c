# shopflow/schemas/checkout.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator
from sqlmodel import SQLModel

from shopflow.models.product import Product


class CheckoutItemIn(SQLModel):
    """
    One cart line as sent by the client.

    Any price the client sends is ignored; only the reference and the
    quantity are read.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    product_id: StrictStr = Field(min_length=1)
    quantity: StrictInt = Field(gt=0)

    @field_validator("quantity", mode="before")
    @classmethod
    def whole_float_quantity(cls, v: Any) -> Any:
        # 2.0 counts as 2; 2.5 is left for the strict int check to reject
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


class CheckoutRequest(SQLModel):
    """
    Body of POST /checkout/validate and POST /orders.
    """

    model_config = ConfigDict(extra="ignore")

    items: list[CheckoutItemIn] = Field(min_length=1)


@dataclass(frozen=True)
class PricedLine:
    """A checkout line priced from the stored product row."""

    product: Product
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CheckoutResult:
    """Outcome of a successful validation run."""

    total: Decimal
    lines: list[PricedLine]


class CheckoutValidation(BaseModel):
    """
    Response of POST /checkout/validate.

    Serialized as {"valid": true, "serverTotal": <number>}.
    """

    model_config = ConfigDict(populate_by_name=True)

    valid: bool = True
    server_total: float = Field(serialization_alias="serverTotal")
