from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user_id, get_payment_gateway
from storefront.api.errors import http_error
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.schemas.checkout_schema import CheckoutSummaryOut, OrderOut, PaymentIn
from storefront.services.checkout_service import CheckoutService

router = APIRouter(prefix="/api/checkout", tags=["checkout"])


@router.post("/initialize", response_model=CheckoutSummaryOut)
def initialize_checkout(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    svc = CheckoutService(db)
    try:
        return svc.initialize_checkout(user_id)
    except StorefrontError as e:
        raise http_error(e)


@router.post("/pay", response_model=OrderOut, status_code=201)
def process_payment(
    payload: PaymentIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    svc = CheckoutService(db, gateway=gateway)
    try:
        return svc.process_payment(
            user_id, payload.shipping_address_id, payload.method, payload.details
        )
    except StorefrontError as e:
        raise http_error(e)
