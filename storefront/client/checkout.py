import enum
from typing import Dict, Optional

from storefront.adapters.mock_payment import validate_payment_details
from storefront.client.api_client import CartApiClient
from storefront.client.notifier import LoggingNotifier, Notifier, safe_notify
from storefront.client.session import CartContext
from storefront.errors import CheckoutFailed, EmptyCart, InvalidCheckoutStep, StorefrontError
from storefront.models.payment import PaymentMethod
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutStep(enum.Enum):
    ADDRESS = "address"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


class CheckoutFlow:
    """
    address -> payment -> confirmation.

    The flow only moves forward, except that the payment step may go back to
    address. Once the order is placed nothing can be revisited.
    """

    def __init__(self, api: CartApiClient, context: CartContext, notifier: Optional[Notifier] = None):
        self.api = api
        self.context = context
        self.notifier = notifier or LoggingNotifier()
        self.step = CheckoutStep.ADDRESS
        self.summary: Optional[Dict] = None
        self.shipping_address_id: Optional[int] = None
        self.order: Optional[Dict] = None

    def _require(self, step: CheckoutStep, action: str):
        if self.step != step:
            raise InvalidCheckoutStep(self.step.value, action)

    async def start(self) -> Dict:
        """Fetch the priced order summary. Nothing is written on the server."""
        self._require(CheckoutStep.ADDRESS, "start checkout")
        if not self.context.store.items:
            raise EmptyCart()
        self.summary = await self.api.initialize_checkout()
        return self.summary

    def select_address(self, address_id: int):
        self._require(CheckoutStep.ADDRESS, "select an address")
        self.shipping_address_id = address_id
        self.step = CheckoutStep.PAYMENT

    def back(self):
        if self.step == CheckoutStep.PAYMENT:
            self.step = CheckoutStep.ADDRESS
            return
        raise InvalidCheckoutStep(self.step.value, "go back")

    async def pay(self, method, details: Optional[Dict] = None) -> Dict:
        self._require(CheckoutStep.PAYMENT, "pay")
        method = PaymentMethod(method)
        details = details or {}
        validate_payment_details(method, details)
        try:
            self.order = await self.api.process_payment(
                self.shipping_address_id, method.value, details
            )
        except CheckoutFailed as e:
            safe_notify(self.notifier, "error", e.reason)
            raise
        except StorefrontError as e:
            safe_notify(self.notifier, "error", str(e))
            raise
        self.step = CheckoutStep.CONFIRMATION
        self.context.store.clear()
        safe_notify(self.notifier, "success", f"Order {self.order['order_number']} placed")
        logger.info("Checkout complete: %s", self.order["order_number"])
        return self.order
