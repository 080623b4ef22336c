# shopflow/services/checkout_service.py
import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from shopflow.core.policies import Identity, authorize
from shopflow.models.product import Product
from shopflow.repositories.product_repo import ProductRepository
from shopflow.schemas.checkout import (
    CheckoutItemIn,
    CheckoutRequest,
    CheckoutResult,
    PricedLine,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero (2.675 -> 2.68, -2.675 -> -2.68)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def not_found_error(product_ref: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "message": f"Product not found: {product_ref}",
            "product_id": product_ref,
        },
    )


def stock_conflict_error(product: Product, requested: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "message": (
                f'Insufficient stock for "{product.name}". '
                f"Available: {product.stock}, Requested: {requested}"
            ),
            "product_id": str(product.id),
            "name": product.name,
            "available": product.stock,
            "requested": requested,
        },
    )


def _payload_error(exc: ValidationError) -> HTTPException:
    """
    Map a body validation failure to the checkout's 400 messages.

    Errors located at the body or at `items` itself mean there is no
    usable cart; anything deeper is a bad line.
    """
    errors = exc.errors()
    if any(e["type"] == "json_invalid" for e in errors):
        return _bad_request("Invalid request payload.")
    if any(len(e["loc"]) < 2 for e in errors):
        return _bad_request("Cart is empty.")
    return _bad_request("Invalid item in cart.")


def parse_items(body: Any) -> list[CheckoutItemIn]:
    """
    Shape-check a checkout body: {"items": [{"product_id", "quantity"}, ...]}.

    `body` is either the raw request bytes or an already decoded value.
    Every item is checked before any product is looked up.

    Raises:
        HTTPException(400): bad JSON, empty/missing items, or any malformed item.
    """
    if isinstance(body, (bytes, str)) and not body.strip():
        body = None
    try:
        if isinstance(body, (bytes, str)):
            return CheckoutRequest.model_validate_json(body).items
        return CheckoutRequest.model_validate(body).items
    except ValidationError as exc:
        raise _payload_error(exc)


class CheckoutService:
    """
    Server-side checkout validation.

    Responsibilities:
      - require an authenticated caller
      - reject malformed carts before touching the database
      - re-read price and stock for every item, in input order
      - stop at the first missing product or stock conflict
      - compute the authoritative total from stored prices

    Read-only: nothing is written here.
    """

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    def _lookup(self, session: Session, product_ref: str) -> Product | None:
        try:
            product_id = uuid.UUID(product_ref)
        except ValueError:
            return None
        return self.product_repo.get_by_id(session, product_id)

    def validate(
        self,
        session: Session,
        identity: Identity | None,
        body: Any,
    ) -> CheckoutResult:
        """
        Validate a checkout body and price it.

        Raises:
            HTTPException(401): no authenticated caller.
            HTTPException(400): malformed body or item.
            HTTPException(404): unknown product (first one, in order).
            HTTPException(409): insufficient stock (first one, in order).
            HTTPException(500): unexpected database failure.
        """
        if identity is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required.",
            )

        items = parse_items(body)

        try:
            return self._price_items(session, identity, items)
        except SQLAlchemyError:
            logger.exception("Checkout validation failed for %s", identity.user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal server error.",
            )

    def _price_items(
        self,
        session: Session,
        identity: Identity,
        items: list[CheckoutItemIn],
    ) -> CheckoutResult:
        total = Decimal("0")
        lines: list[PricedLine] = []

        for item in items:
            product = self._lookup(session, item.product_id)
            if product is None:
                logger.info("Checkout rejected: unknown product %s", item.product_id)
                raise not_found_error(item.product_id)

            authorize(identity, "products", "select", product)

            if product.stock < item.quantity:
                logger.info(
                    "Checkout rejected: stock conflict product=%s available=%s requested=%s",
                    product.id,
                    product.stock,
                    item.quantity,
                )
                raise stock_conflict_error(product, item.quantity)

            unit_price = Decimal(str(product.price))
            total += unit_price * item.quantity
            lines.append(
                PricedLine(product=product, quantity=item.quantity, unit_price=unit_price)
            )

        return CheckoutResult(total=round_money(total), lines=lines)
