# shopflow/services/cart_service.py
import logging
import uuid
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlmodel import Session

from shopflow.core.policies import Identity, authorize
from shopflow.models.cart import CartSnapshotRecord
from shopflow.models.product import Product
from shopflow.repositories.cart_repo import CartRepository
from shopflow.repositories.product_repo import ProductRepository
from shopflow.schemas.cart import (
    CART_SNAPSHOT_VERSION,
    CartEntry,
    CartItemAdd,
    CartItemUpdate,
    CartLineRead,
    CartSnapshot,
    CartSnapshotError,
    CartSummary,
    ProductSnapshot,
    migrate_snapshot,
)
from shopflow.services.checkout_service import round_money

logger = logging.getLogger(__name__)


def snapshot_product(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=product.id,
        name=product.name,
        price=float(product.price),
        stock=product.stock,
        image_url=product.image_url,
        category=product.category,
    )


class CartState:
    """
    Single-writer cart state machine.

    Quantities are clamped to the product's last known stock. That stock
    may be stale; checkout validation is the only authority.
    An entry whose clamped quantity reaches 0 is dropped.
    """

    def __init__(self, entries: list[CartEntry] | None = None):
        self._entries: list[CartEntry] = list(entries or [])

    @classmethod
    def from_snapshot(cls, snapshot: CartSnapshot) -> "CartState":
        state = cls()
        state.restore(snapshot)
        return state

    @property
    def entries(self) -> list[CartEntry]:
        return list(self._entries)

    def _index(self, product_id: uuid.UUID) -> int | None:
        for idx, entry in enumerate(self._entries):
            if entry.product.id == product_id:
                return idx
        return None

    def _put(self, idx: int | None, product: ProductSnapshot, quantity: int) -> None:
        if quantity <= 0:
            if idx is not None:
                del self._entries[idx]
            return
        entry = CartEntry(product=product, quantity=quantity)
        if idx is None:
            self._entries.append(entry)
        else:
            self._entries[idx] = entry

    def add(self, product: ProductSnapshot, quantity: int = 1) -> None:
        """Add `quantity` of `product`, merging with an existing entry."""
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        idx = self._index(product.id)
        current = self._entries[idx].quantity if idx is not None else 0
        self._put(idx, product, min(current + quantity, product.stock))

    def remove(self, product_id: uuid.UUID) -> bool:
        idx = self._index(product_id)
        if idx is None:
            return False
        del self._entries[idx]
        return True

    def set_quantity(self, product_id: uuid.UUID, quantity: int) -> bool:
        """
        Set the quantity of an existing entry; <= 0 removes it.
        Returns False when the product is not in the cart.
        """
        idx = self._index(product_id)
        if idx is None:
            return False
        product = self._entries[idx].product
        self._put(idx, product, min(quantity, product.stock))
        return True

    def clear(self) -> None:
        self._entries = []

    def restore(self, snapshot: CartSnapshot) -> None:
        """Replace the whole cart; entries are re-merged and re-clamped."""
        self.clear()
        for entry in snapshot.items:
            self.add(entry.product, entry.quantity)

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(version=CART_SNAPSHOT_VERSION, items=self.entries)

    @property
    def item_count(self) -> int:
        return sum(e.quantity for e in self._entries)

    @property
    def total(self) -> Decimal:
        total = sum(
            (Decimal(str(e.product.price)) * e.quantity for e in self._entries),
            Decimal("0"),
        )
        return round_money(total)


class CartService:
    """
    Persisted cart per identity.

    Responsibilities:
      - load / save the caller's snapshot (last write wins)
      - snapshot products from the catalog when adding
      - surface unreadable snapshots instead of dropping them
    """

    def __init__(self, cart_repo: CartRepository, product_repo: ProductRepository):
        self.cart_repo = cart_repo
        self.product_repo = product_repo

    # ---- internal helpers ----

    def _load(self, session: Session, identity: Identity) -> CartState:
        record = self.cart_repo.get_for_user(session, identity.user_id)
        if record is None:
            return CartState()
        authorize(identity, "cart_snapshots", "select", record)
        try:
            snapshot = migrate_snapshot(record.payload)
        except CartSnapshotError as exc:
            logger.error("Stored cart for %s is unreadable: %s", identity.user_id, exc)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Stored cart is unreadable ({exc}). Replace or clear the cart.",
            )
        return CartState.from_snapshot(snapshot)

    def _save(self, session: Session, identity: Identity, state: CartState) -> CartSummary:
        existing = self.cart_repo.get_for_user(session, identity.user_id)
        action = "insert" if existing is None else "update"
        authorize(
            identity,
            "cart_snapshots",
            action,
            existing or CartSnapshotRecord(user_id=identity.user_id),
        )
        snapshot = state.snapshot()
        self.cart_repo.save(
            session,
            identity.user_id,
            version=snapshot.version,
            payload=snapshot.model_dump(mode="json"),
        )
        return self.summarize(state)

    @staticmethod
    def summarize(state: CartState) -> CartSummary:
        return CartSummary(
            version=CART_SNAPSHOT_VERSION,
            items=[
                CartLineRead(
                    product=e.product,
                    quantity=e.quantity,
                    line_total=float(
                        round_money(Decimal(str(e.product.price)) * e.quantity)
                    ),
                )
                for e in state.entries
            ],
            item_count=state.item_count,
            total=float(state.total),
        )

    # ---- public operations ----

    def get_cart(self, session: Session, identity: Identity) -> CartSummary:
        return self.summarize(self._load(session, identity))

    def add_item(
        self,
        session: Session,
        identity: Identity,
        payload: CartItemAdd,
    ) -> CartSummary:
        """
        Snapshot the product from the catalog and add it, clamped to stock.
        """
        product = self.product_repo.get_by_id(session, payload.product_id)
        if product is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        authorize(identity, "products", "select", product)

        state = self._load(session, identity)
        state.add(snapshot_product(product), payload.quantity)
        return self._save(session, identity, state)

    def update_quantity(
        self,
        session: Session,
        identity: Identity,
        product_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        state = self._load(session, identity)
        if not state.set_quantity(product_id, payload.quantity):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Item not in cart",
            )
        return self._save(session, identity, state)

    def remove_item(
        self,
        session: Session,
        identity: Identity,
        product_id: uuid.UUID,
    ) -> CartSummary:
        state = self._load(session, identity)
        if not state.remove(product_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Item not in cart",
            )
        return self._save(session, identity, state)

    def clear_cart(self, session: Session, identity: Identity) -> CartSummary:
        record = self.cart_repo.get_for_user(session, identity.user_id)
        if record is not None:
            authorize(identity, "cart_snapshots", "delete", record)
            self.cart_repo.delete_for_user(session, identity.user_id)
        return self.summarize(CartState())

    def restore(
        self,
        session: Session,
        identity: Identity,
        raw: Any,
    ) -> CartSummary:
        """
        Replace the caller's cart with a client snapshot (any known version).
        The snapshot overwrites whatever is stored: last write wins.
        """
        try:
            snapshot = migrate_snapshot(raw)
        except CartSnapshotError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            )
        return self._save(session, identity, CartState.from_snapshot(snapshot))
