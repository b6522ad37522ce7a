from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.errors import http_error
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.schemas.product_schema import AvailabilityOut, RestockIn
from storefront.services.inventory_service import InventoryService

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get("/{product_id}", response_model=AvailabilityOut)
def available(product_id: int, variant_id: Optional[int] = None, db: Session = Depends(get_db)):
    svc = InventoryService(db)
    try:
        avail = svc.available_quantity(product_id, variant_id)
    except StorefrontError as e:
        raise http_error(e)
    return AvailabilityOut(product_id=product_id, variant_id=variant_id, available_quantity=avail)


@router.post("/{product_id}/restock", response_model=AvailabilityOut)
def restock(product_id: int, payload: RestockIn, db: Session = Depends(get_db)):
    """
    payload: { "quantity": 10, "variant_id": null }
    """
    svc = InventoryService(db)
    try:
        avail = svc.restock(product_id, payload.quantity, variant_id=payload.variant_id)
    except StorefrontError as e:
        raise http_error(e)
    return AvailabilityOut(
        product_id=product_id, variant_id=payload.variant_id, available_quantity=avail
    )
