from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from storefront.models.order import OrderStatus
from storefront.models.payment import PaymentMethod


class CheckoutLineOut(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    name: str
    quantity: int
    unit_price_cents: int
    price_cents: int


class CheckoutSummaryOut(BaseModel):
    items: List[CheckoutLineOut]
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int


class PaymentIn(BaseModel):
    shipping_address_id: int
    method: PaymentMethod
    details: Dict = Field(default_factory=dict)


class OrderOut(BaseModel):
    order_id: int
    order_number: str
    status: OrderStatus
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    transaction_id: Optional[str] = None
    items: List[CheckoutLineOut] = Field(default_factory=list)
