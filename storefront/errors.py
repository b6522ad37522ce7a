"""Exceptions shared by the cart store, the sync coordinator and the server services."""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    code = "storefront_error"

    def to_dict(self) -> dict:
        return {"code": self.code, "message": str(self)}


class InvalidQuantity(StorefrontError):
    """Raised when a line quantity is below 1 or above the per-line maximum."""

    code = "invalid_quantity"

    def __init__(self, quantity: int, reason: Optional[str] = None):
        self.quantity = quantity
        msg = f"Invalid quantity: {quantity}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "quantity": self.quantity}


class InsufficientInventory(StorefrontError):
    """Raised when a requested quantity exceeds what is in stock."""

    code = "insufficient_inventory"

    def __init__(
        self,
        product_id: int,
        requested: int,
        available: int,
        variant_id: Optional[int] = None,
    ):
        self.product_id = product_id
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        if available <= 0:
            msg = f"Product {product_id} is out of stock"
        else:
            msg = f"Only {available} items available for product {product_id}"
        super().__init__(msg)

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "requested": self.requested,
            "available": self.available,
        }


class NotFound(StorefrontError):
    """Raised when a product, variant, cart line or address does not exist."""

    code = "not_found"

    def __init__(self, entity: str, key=None):
        self.entity = entity
        self.key = key
        msg = f"{entity} not found"
        if key is not None:
            msg = f"{entity} not found: {key}"
        super().__init__(msg)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "entity": self.entity, "key": self.key}


class EmptyCart(StorefrontError):
    code = "empty_cart"

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id
        super().__init__("Cart is empty")


class SyncFailure(StorefrontError):
    """Raised when the server cart could not be fetched within the retry budget.

    Local cart state is untouched when this is raised.
    """

    code = "sync_failure"

    def __init__(self, attempts: int, reason: Optional[str] = None):
        self.attempts = attempts
        self.reason = reason
        msg = f"Cart sync failed after {attempts} attempts"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class CheckoutFailed(StorefrontError):
    """Raised when a checkout transaction was rolled back."""

    code = "checkout_failed"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Checkout failed: {reason}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason}


class InvalidPaymentDetails(CheckoutFailed):
    code = "invalid_payment_details"


class LockTimeout(StorefrontError):
    """Raised when a cart or product lock could not be acquired in time."""

    code = "lock_timeout"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Could not acquire lock {name}; try again")


class CartApiError(StorefrontError):
    """Raised by the client transport for network failures and server errors."""

    code = "cart_api_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidCheckoutStep(StorefrontError):
    """Raised when the checkout flow is driven out of order."""

    code = "invalid_checkout_step"

    def __init__(self, current: str, attempted: str):
        self.current = current
        self.attempted = attempted
        super().__init__(f"Cannot {attempted} while at the {current} step")


def error_from_payload(payload: dict, status_code: Optional[int] = None) -> StorefrontError:
    """Rebuild a storefront exception from an HTTP error body."""
    code = payload.get("code")
    message = payload.get("message") or "Request failed"
    if code == InvalidQuantity.code:
        return InvalidQuantity(payload.get("quantity", 0))
    if code == InsufficientInventory.code:
        return InsufficientInventory(
            payload.get("product_id"),
            payload.get("requested", 0),
            payload.get("available", 0),
            variant_id=payload.get("variant_id"),
        )
    if code == NotFound.code:
        return NotFound(payload.get("entity", "Resource"), payload.get("key"))
    if code == EmptyCart.code:
        return EmptyCart()
    if code == InvalidPaymentDetails.code:
        return InvalidPaymentDetails(payload.get("reason", message))
    if code == CheckoutFailed.code:
        return CheckoutFailed(payload.get("reason", message))
    # lock_timeout and unknown codes are transient from the client's point of view
    return CartApiError(message, status_code=status_code)
