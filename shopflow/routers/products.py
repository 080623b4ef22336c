# shopflow/routers/products.py
import uuid

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    UploadFile,
    status,
)
from sqlmodel import Session

from shopflow.core.auth import require_admin, require_identity
from shopflow.core.policies import Identity
from shopflow.database import get_session
from shopflow.repositories.product_repo import ProductRepository
from shopflow.schemas.product import ProductForm, ProductRead
from shopflow.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo)


# -------- Public endpoints --------


@router.get("", response_model=list[ProductRead])
def list_products(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    category: str | None = None,
    search: str | None = None,
):
    """
    List products, newest first.

    - Public endpoint.
    - Optional `category` filter and case-insensitive name `search`.
    """
    return service.list_products(
        session, skip=skip, limit=limit, category=category, search=search
    )


@router.get("/categories", response_model=list[str])
def list_categories(session: Session = Depends(get_session)):
    """Distinct product categories (public)."""
    return service.list_categories(session)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get a single product by id.

    - Public endpoint.
    """
    return service.get_product(session, product_id)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_product(
    payload: ProductForm,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Create a product from the editor form (admin only).
    """
    return service.save_product(session, identity, None, payload)


@router.put(
    "/{product_id}",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
def update_product(
    product_id: uuid.UUID,
    payload: ProductForm,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Save the editor form over an existing product (admin only).
    """
    return service.save_product(session, identity, product_id, payload)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Delete a product and its stored image (admin only).
    """
    service.delete_product(session, identity, product_id)
    return None


@router.post(
    "/{product_id}/image",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
    summary="Upload or replace the product image",
)
def upload_product_image(
    product_id: uuid.UUID,
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
):
    """
    Upload a new image for the product.

    - Accepts JPEG, PNG, WEBP up to 5MB.
    - Replaces any previous image.
    """
    if not file.content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing content-type for uploaded file",
        )

    file_bytes = file.file.read()
    return service.set_image(
        session=session,
        identity=identity,
        product_id=product_id,
        content_type=file.content_type,
        file_bytes=file_bytes,
    )
