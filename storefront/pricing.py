from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from storefront.config import settings


@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int


def shipping_for(subtotal_cents: int) -> int:
    if subtotal_cents > settings.FREE_SHIPPING_THRESHOLD_CENTS:
        return 0
    return settings.SHIPPING_FEE_CENTS


def tax_for(subtotal_cents: int, rate: Optional[float] = None) -> int:
    rate = settings.TAX_RATE if rate is None else rate
    tax = Decimal(subtotal_cents) * Decimal(str(rate))
    return int(tax.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_totals(subtotal_cents: int, discount_cents: int = 0) -> Totals:
    """total = subtotal + shipping + tax - discount, all in cents."""
    shipping = shipping_for(subtotal_cents)
    tax = tax_for(subtotal_cents)
    total = max(0, subtotal_cents + shipping + tax - discount_cents)
    return Totals(
        subtotal_cents=subtotal_cents,
        shipping_cents=shipping,
        tax_cents=tax,
        discount_cents=discount_cents,
        total_cents=total,
    )
