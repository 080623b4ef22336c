# shopflow/routers/cart.py
import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from shopflow.core.auth import require_identity
from shopflow.core.policies import Identity
from shopflow.database import get_session
from shopflow.repositories.cart_repo import CartRepository
from shopflow.repositories.product_repo import ProductRepository
from shopflow.schemas.cart import CartItemAdd, CartItemUpdate, CartSummary
from shopflow.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
service = CartService(cart_repo, product_repo)


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Get the caller's cart with advisory totals.
    """
    return service.get_cart(session, identity)


@router.put("", response_model=CartSummary)
def restore_cart(
    payload: Any = Body(default=None),
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Replace the cart with a client snapshot.

    Accepts the current shape {"version": 2, "items": [...]} or a
    version 1 list of entries. Last write wins.
    """
    return service.restore(session, identity, payload)


@router.post("/items", response_model=CartSummary)
def add_to_cart(
    payload: CartItemAdd,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Add a product to the cart; quantity is clamped to current stock.
    """
    return service.add_item(session, identity, payload)


@router.patch("/items/{product_id}", response_model=CartSummary)
def update_cart_item(
    product_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Set the quantity of a cart entry (<= 0 removes it).
    """
    return service.update_quantity(session, identity, product_id, payload)


@router.delete("/items/{product_id}", response_model=CartSummary)
def remove_cart_item(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Remove a product from the cart.
    """
    return service.remove_item(session, identity, product_id)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Clear the entire cart.
    """
    return service.clear_cart(session, identity)
