# shopflow/services/order_service.py
import logging
import uuid
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from shopflow.core.policies import Identity, allowed, authorize
from shopflow.models.order import Order, OrderItem
from shopflow.repositories.cart_repo import CartRepository
from shopflow.repositories.order_repo import OrderRepository
from shopflow.repositories.product_repo import ProductRepository
from shopflow.schemas.order import (
    STATUS_FLOW,
    OrderItemRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
)
from shopflow.services.checkout_service import (
    CheckoutService,
    not_found_error,
    stock_conflict_error,
)

logger = logging.getLogger(__name__)


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Place an order from a list of (product, quantity) pairs
      - Re-validate and price the items inside the write transaction
      - Take stock with a conditional decrement per line
      - Roll back the whole order if any line cannot be fulfilled
      - Clear the caller's persisted cart after success
      - Enforce forward-only status transitions
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        cart_repo: CartRepository,
        checkout: CheckoutService,
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.cart_repo = cart_repo
        self.checkout = checkout

    # -------- Placement --------

    def place_order(
        self,
        session: Session,
        identity: Identity | None,
        body: Any,
    ) -> OrderWithItemsRead:
        """
        Validate the items and write the order in one transaction.

        Steps:
          1. Run checkout validation (auth, shape, existence, stock, total).
          2. Insert the Order (status='pending', validated total).
          3. For each line, decrement stock where stock >= quantity;
             a rejected decrement rolls everything back (409).
          4. Insert the OrderItem with its unit price snapshot.
          5. Drop the caller's persisted cart.
          6. Commit.

        Raises:
            HTTPException: everything `CheckoutService.validate` raises,
            409 on a lost stock race, 500 on a failed write.
        """
        result = self.checkout.validate(session, identity, body)

        try:
            order = Order(
                user_id=identity.user_id,
                total_amount=result.total,
                status="pending",
            )
            authorize(identity, "orders", "insert", order)
            order = self.order_repo.create_order(session, order)

            items: list[OrderItem] = []
            for line in result.lines:
                product_id = line.product.id
                if not self.product_repo.decrement_stock(session, product_id, line.quantity):
                    requested = sum(
                        other.quantity
                        for other in result.lines
                        if other.product.id == product_id
                    )
                    session.rollback()
                    raise self._lost_stock_race(session, product_id, requested)

                authorize(identity, "order_items", "insert", order)
                item = OrderItem(
                    order_id=order.id,
                    product_id=product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                items.append(self.order_repo.create_item(session, item))

            cart = self.cart_repo.get_for_user(session, identity.user_id)
            if cart is not None:
                authorize(identity, "cart_snapshots", "delete", cart)
                self.cart_repo.delete_for_user(session, identity.user_id, commit=False)

            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Order write failed for %s", identity.user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create order.",
            )

        logger.info(
            "Order %s placed by %s: %s line(s), total %s",
            order.id,
            identity.user_id,
            len(items),
            result.total,
        )
        return self._build_order_with_items_dto(order, items)

    def _lost_stock_race(
        self,
        session: Session,
        product_id: uuid.UUID,
        requested: int,
    ) -> HTTPException:
        """
        Build the 409 for a product whose stock ran out between validation
        and commit. `requested` is the order-wide quantity for the product,
        which can exceed stock even when every single line fits.
        Runs after rollback, so it re-reads.
        """
        product = self.product_repo.get_by_id(session, product_id)
        if product is None:
            return not_found_error(str(product_id))
        logger.warning(
            "Stock race lost: product=%s available=%s requested=%s",
            product_id,
            product.stock,
            requested,
        )
        return stock_conflict_error(product, requested)

    # -------- Reads --------

    def list_user_orders(
        self,
        session: Session,
        identity: Identity,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """
        List the caller's orders (without items), newest first.
        """
        orders = self.order_repo.list_for_user(session, identity.user_id, skip, limit)
        return [o for o in orders if allowed(identity, "orders", "select", o)]

    def list_all_orders(
        self,
        session: Session,
        identity: Identity,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """
        List all orders visible to the caller (admins see everything).
        """
        orders = self.order_repo.list_all(session, skip, limit)
        return [o for o in orders if allowed(identity, "orders", "select", o)]

    def _get_visible_order(
        self,
        session: Session,
        identity: Identity,
        order_id: uuid.UUID,
    ) -> Order:
        # Orders the caller may not see are reported as missing.
        order = self.order_repo.get_by_id(session, order_id)
        if order is None or not allowed(identity, "orders", "select", order):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def get_order(
        self,
        session: Session,
        identity: Identity,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order with items (owner or admin).
        """
        order = self._get_visible_order(session, identity, order_id)
        authorize(identity, "order_items", "select", order)
        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    # -------- Status lifecycle --------

    def update_status(
        self,
        session: Session,
        identity: Identity,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> Order:
        """
        Move an order forward one step:

          pending -> confirmed -> shipped -> delivered

        Same status is a no-op; anything else raises 400.
        """
        order = self._get_visible_order(session, identity, order_id)
        authorize(identity, "orders", "update", order)

        current = order.status
        new = payload.status

        if current == new:
            return order

        if new not in STATUS_FLOW.get(current, set()):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status transition: {current} -> {new}",
            )

        order.status = new
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        logger.info("Order %s moved %s -> %s by %s", order.id, current, new, identity.user_id)
        return order

    # -------- Helper DTO builder --------

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM models.
        """
        item_dtos = [
            OrderItemRead(
                id=it.id,
                order_id=it.order_id,
                product_id=it.product_id,
                quantity=it.quantity,
                unit_price=float(it.unit_price),
                line_total=float(it.unit_price * it.quantity),
            )
            for it in items
        ]

        base = OrderRead(
            id=order.id,
            user_id=order.user_id,
            status=order.status,  # type: ignore[arg-type]
            total_amount=float(order.total_amount),
            created_at=order.created_at,
        )
        return OrderWithItemsRead(**base.model_dump(), items=item_dtos)
