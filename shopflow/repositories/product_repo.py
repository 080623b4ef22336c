# shopflow/repositories/product_repo.py
import uuid

from sqlalchemy import update
from sqlmodel import Session, select

from shopflow.models.product import Product


class ProductRepository:
    """
    Data access layer for Product.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        category: str | None = None,
        search: str | None = None,
    ) -> list[Product]:
        stmt = select(Product)
        if category:
            stmt = stmt.where(Product.category == category)
        if search:
            stmt = stmt.where(Product.name.ilike(f"%{search}%"))
        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def list_categories(self, session: Session) -> list[str]:
        stmt = select(Product.category).distinct().order_by(Product.category)
        return list(session.exec(stmt).all())

    def save(self, session: Session, product: Product) -> Product:
        """Insert or update a product and commit."""
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def delete(self, session: Session, product: Product) -> None:
        session.delete(product)
        session.commit()

    def decrement_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        Atomically take `quantity` units out of stock.

        Single conditional UPDATE guarded by `stock >= quantity`; no commit.
        Returns False when the guard rejected the row (not enough stock
        or product gone).
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        return result.rowcount == 1
