# shopflow/services/product_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from shopflow.core.policies import Identity, authorize
from shopflow.core.storage_utils import (
    upload_to_storage,
    delete_public_url,
    generate_filename,
)
from shopflow.models.product import DEFAULT_CATEGORY, Product
from shopflow.repositories.product_repo import ProductRepository
from shopflow.schemas.product import ProductForm, parse_price, parse_stock

logger = logging.getLogger(__name__)


# --- Image config ---

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def _backend_error(exc: SQLAlchemyError) -> HTTPException:
    """Pass the database's own message through unchanged."""
    message = str(getattr(exc, "orig", None) or exc)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class ProductService:
    """
    Catalog reads and the admin product editor.

    Responsibilities:
      - parse and check editor input before writing
      - one upsert per save (insert when no id, update otherwise)
      - admin-only writes, enforced by the products policy
      - image upload orchestration with Supabase Storage
    """

    def __init__(self, repo: ProductRepository):
        self.repo = repo

    # ----- Helpers -----

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported image type. Allowed: JPEG, PNG, WEBP.",
            )

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Image too large (max 5MB).",
            )

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    @staticmethod
    def _apply_form(product: Product, form: ProductForm) -> Product:
        """
        Copy checked form values onto `product`.

        Raises:
            HTTPException(400): bad name, price or stock.
        """
        try:
            price = parse_price(form.price)
            stock = parse_stock(form.stock)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            )

        name = form.name.strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Enter a product name.",
            )

        product.name = name
        product.description = form.description.strip()
        product.price = price
        product.stock = stock
        product.image_url = (form.image_url or "").strip() or None
        product.category = form.category.strip() or DEFAULT_CATEGORY
        return product

    # ----- Catalog -----

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        category: str | None = None,
        search: str | None = None,
    ) -> list[Product]:
        return self.repo.list_products(
            session, skip=skip, limit=limit, category=category, search=search
        )

    def list_categories(self, session: Session) -> list[str]:
        return self.repo.list_categories(session)

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product

    # ----- Admin editor -----

    def save_product(
        self,
        session: Session,
        identity: Identity | None,
        product_id: uuid.UUID | None,
        form: ProductForm,
    ) -> Product:
        """
        Create (product_id is None) or update a product from the editor form.

        Input is checked locally first; the write is a single upsert whose
        database error message, if any, is returned verbatim.
        """
        if product_id is None:
            product = Product()
            action = "insert"
        else:
            product = self.get_product(session, product_id)
            action = "update"

        authorize(identity, "products", action, product)
        self._apply_form(product, form)

        try:
            saved = self.repo.save(session, product)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("Product %s failed: %s", action, exc)
            raise _backend_error(exc)

        logger.info("Product %s saved (%s)", saved.id, action)
        return saved

    def delete_product(
        self,
        session: Session,
        identity: Identity | None,
        product_id: uuid.UUID,
    ) -> None:
        """
        Delete a product and clean up its stored image.
        Order lines keep their price snapshot; their product reference is nulled.
        """
        product = self.get_product(session, product_id)
        authorize(identity, "products", "delete", product)

        image_url = product.image_url
        try:
            self.repo.delete(session, product)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("Product delete failed: %s", exc)
            raise _backend_error(exc)

        if image_url:
            self._discard_image(image_url)

    # ----- Image -----

    def set_image(
        self,
        session: Session,
        identity: Identity | None,
        product_id: uuid.UUID,
        content_type: str,
        file_bytes: bytes,
    ) -> Product:
        """
        Upload or replace the product image.

        - Validates content type + size.
        - Uploads the new file and stores its public URL in image_url.
        - Only then removes the previous image from Storage, if it lives there.

        Raises:
            HTTPException(502): the upload was refused; the product is unchanged.
        """
        product = self.get_product(session, product_id)
        authorize(identity, "products", "update", product)
        ext = self._validate_and_get_ext(content_type, file_bytes)

        path = f"products/{product.id}/{generate_filename(ext)}"
        try:
            new_url = upload_to_storage(path, file_bytes, content_type)
        except Exception:
            logger.exception("Image upload failed for product %s", product.id)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Image upload failed.",
            )

        old_url = product.image_url
        product.image_url = new_url
        saved = self.repo.save(session, product)

        if old_url:
            self._discard_image(old_url)
        return saved

    @staticmethod
    def _discard_image(url: str) -> None:
        # best effort; the row no longer points at this object
        try:
            delete_public_url(url)
        except Exception:
            logger.warning("Could not delete stored image %s", url, exc_info=True)
