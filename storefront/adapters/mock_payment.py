import re
import time
from dataclasses import dataclass
from typing import Dict, Optional
from uuid import uuid4

from storefront.config import settings
from storefront.errors import InvalidPaymentDetails
from storefront.models.payment import PaymentMethod

_EXPIRY = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$")


@dataclass
class PaymentResult:
    success: bool
    transaction_id: Optional[str] = None
    message: str = ""


def validate_payment_details(method: PaymentMethod, details: Optional[Dict]):
    """
    Check the shape of the payment details for a method.

    Raises InvalidPaymentDetails; called before any checkout work starts.
    """
    details = details or {}
    if method == PaymentMethod.CARD:
        number = str(details.get("card_number") or "").replace(" ", "")
        if len(number) != 16 or not number.isdigit():
            raise InvalidPaymentDetails("Card number must be 16 digits")
        if not _EXPIRY.match(str(details.get("expiry_date") or "")):
            raise InvalidPaymentDetails("Expiry date must be MM/YY")
        cvv = str(details.get("cvv") or "")
        if len(cvv) != 3 or not cvv.isdigit():
            raise InvalidPaymentDetails("CVV must be 3 digits")
    elif method == PaymentMethod.UPI:
        upi_id = str(details.get("upi_id") or "")
        name, _, bank = upi_id.partition("@")
        if not name or not bank:
            raise InvalidPaymentDetails("Invalid UPI ID")


class MockPaymentAdapter:
    """
    Stand-in for a payment gateway.

    Any object with ``execute(method, details, amount_cents) -> PaymentResult``
    can replace it; the checkout service only depends on that call.
    """

    def __init__(self, delay_ms: Optional[int] = None):
        delay_ms = settings.PAYMENT_MOCK_DELAY_MS if delay_ms is None else delay_ms
        self.delay_seconds = delay_ms / 1000.0

    def execute(
        self, method: PaymentMethod, details: Optional[Dict] = None, amount_cents: int = 0
    ) -> PaymentResult:
        """
        Simulate a charge.

        ``details["force_decline"]`` makes the charge fail deterministically.
        Cash on delivery always succeeds; it is collected later.
        """
        details = details or {}
        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        if details.get("force_decline"):
            return PaymentResult(success=False, message="Simulated forced decline")

        return PaymentResult(
            success=True,
            transaction_id=f"mock-{method.value}-{uuid4().hex}",
            message=f"Captured {amount_cents} cents",
        )

    def health_check(self) -> bool:
        return True
