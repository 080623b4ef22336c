# shopflow/routers/checkout.py
from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from shopflow.core.auth import get_identity
from shopflow.core.policies import Identity
from shopflow.database import get_session
from shopflow.repositories.product_repo import ProductRepository
from shopflow.schemas.checkout import CheckoutValidation
from shopflow.services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkout", tags=["Checkout"])

product_repo = ProductRepository()
service = CheckoutService(product_repo)


async def read_raw_body(request: Request) -> bytes:
    """
    Request body, undecoded. The service decodes it after the caller
    has been identified.
    """
    return await request.body()


@router.post("/validate", response_model=CheckoutValidation)
def validate_checkout(
    session: Session = Depends(get_session),
    identity: Identity | None = Depends(get_identity),
    payload: bytes = Depends(read_raw_body),
):
    """
    Re-price the cart from stored prices and check stock.

    Body: {"items": [{"product_id": "<uuid>", "quantity": 2}, ...]}

    Responses:
      - 200 {"valid": true, "serverTotal": 200.0}
      - 400 malformed JSON, body or item
      - 401 no session
      - 404 unknown product
      - 409 insufficient stock
      - 500 unexpected failure

    Read-only; placing the order re-validates inside its own transaction.
    """
    result = service.validate(session, identity, payload)
    return CheckoutValidation(valid=True, server_total=float(result.total))
