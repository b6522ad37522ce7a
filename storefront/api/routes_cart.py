from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user_id
from storefront.api.errors import http_error
from storefront.db import get_db
from storefront.errors import StorefrontError
from storefront.schemas.cart_schema import (
    AddItemIn,
    BulkAddIn,
    CartLineOut,
    CartOut,
    InventoryReportOut,
    RemoveItemIn,
    RemoveResultOut,
    UpdateQuantitiesIn,
)
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("", response_model=CartOut, summary="Get cart")
def get_cart(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    svc = CartService(db)
    try:
        return svc.get_cart(user_id)
    except StorefrontError as e:
        raise http_error(e)


@router.post("", response_model=CartOut, summary="Get or create cart")
def get_or_create_cart(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    svc = CartService(db)
    try:
        return svc.get_or_create_cart(user_id)
    except StorefrontError as e:
        raise http_error(e)


@router.post("/items", response_model=CartLineOut, summary="Add item to cart")
def add_to_cart(
    payload: AddItemIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        return svc.add_to_cart(
            user_id, payload.product_id, quantity=payload.quantity, variant_id=payload.variant_id
        )
    except StorefrontError as e:
        raise http_error(e)


@router.post("/items/bulk", response_model=CartOut, summary="Add several items")
def add_items(
    payload: BulkAddIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        return svc.add_items(user_id, [it.model_dump() for it in payload.items])
    except StorefrontError as e:
        raise http_error(e)


@router.post("/items/remove", response_model=RemoveResultOut, summary="Decrement or remove an item")
def remove_from_cart(
    payload: RemoveItemIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        return svc.remove_from_cart(
            user_id, payload.product_id, quantity=payload.quantity, variant_id=payload.variant_id
        )
    except StorefrontError as e:
        raise http_error(e)


@router.patch("/items", response_model=CartOut, summary="Set line quantities")
def update_quantities(
    payload: UpdateQuantitiesIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = CartService(db)
    try:
        return svc.update_quantities(user_id, [u.model_dump() for u in payload.updates])
    except StorefrontError as e:
        raise http_error(e)


@router.delete("", summary="Clear cart")
def clear_cart(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    svc = CartService(db)
    try:
        return {"cleared": svc.clear_cart(user_id)}
    except StorefrontError as e:
        raise http_error(e)


@router.get("/validate", response_model=InventoryReportOut, summary="Check cart against stock")
def validate_inventory(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    svc = CartService(db)
    return svc.validate_inventory(user_id)
