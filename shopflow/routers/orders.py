# shopflow/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from shopflow.core.auth import get_identity, require_admin, require_identity
from shopflow.core.policies import Identity
from shopflow.database import get_session
from shopflow.repositories.cart_repo import CartRepository
from shopflow.repositories.order_repo import OrderRepository
from shopflow.repositories.product_repo import ProductRepository
from shopflow.routers.checkout import read_raw_body
from shopflow.schemas.order import (
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
)
from shopflow.services.checkout_service import CheckoutService
from shopflow.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
product_repo = ProductRepository()
cart_repo = CartRepository()
service = OrderService(
    order_repo,
    product_repo,
    cart_repo,
    CheckoutService(product_repo),
)


@router.post(
    "",
    response_model=OrderWithItemsRead,
    status_code=status.HTTP_201_CREATED,
)
def place_order(
    session: Session = Depends(get_session),
    identity: Identity | None = Depends(get_identity),
    payload: bytes = Depends(read_raw_body),
):
    """
    Place an order.

    Body: same as /checkout/validate.

    Prices and total are read from the database, stock is taken with a
    conditional decrement, and any failure leaves no order behind.
    """
    return service.place_order(session, identity, payload)


@router.get("/me", response_model=list[OrderRead])
def list_my_orders(
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the authenticated user's orders (without items).
    """
    return service.list_user_orders(session, identity, skip, limit)


@router.get(
    "",
    response_model=list[OrderRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
    skip: int = 0,
    limit: int = 50,
):
    """
    List all orders (admin only).
    """
    return service.list_all_orders(session, identity, skip, limit)


@router.get("/{order_id}", response_model=OrderWithItemsRead)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Get a single order with items (owner or admin).
    """
    return service.get_order(session, identity, order_id)


@router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Move an order forward (owner or admin).

      pending -> confirmed -> shipped -> delivered

    """
    return service.update_status(session, identity, order_id, payload)
