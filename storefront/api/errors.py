from fastapi import HTTPException

from storefront.errors import (
    CheckoutFailed,
    EmptyCart,
    InsufficientInventory,
    InvalidQuantity,
    LockTimeout,
    NotFound,
    StorefrontError,
)

STATUS_CODES = [
    (InvalidQuantity, 400),
    (EmptyCart, 400),
    (NotFound, 404),
    (InsufficientInventory, 409),
    (CheckoutFailed, 402),
    (LockTimeout, 503),
]


def http_error(e: StorefrontError) -> HTTPException:
    status = next((code for cls, code in STATUS_CODES if isinstance(e, cls)), 400)
    return HTTPException(status_code=status, detail=e.to_dict())
