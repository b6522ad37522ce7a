from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from storefront.models.address import Address
from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.payment import Payment, PaymentAttempt


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def _gen_order_number(self) -> str:
        return f"ORD-{uuid4().hex[:10].upper()}"

    def get_address(self, address_id: int, user_id: str) -> Optional[Address]:
        return (
            self.db.query(Address)
            .filter(Address.id == address_id, Address.user_id == user_id)
            .first()
        )

    def create_order(self, user_id: str, shipping_address_id: int, totals) -> Order:
        order = Order(
            order_number=self._gen_order_number(),
            user_id=user_id,
            status=OrderStatus.PENDING,
            shipping_address_id=shipping_address_id,
            subtotal_cents=totals.subtotal_cents,
            shipping_cents=totals.shipping_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
        )
        self.db.add(order)
        self.db.flush()
        return order

    def add_item(self, order: Order, **fields) -> OrderItem:
        item = OrderItem(order_id=order.id, **fields)
        self.db.add(item)
        order.items.append(item)
        return item

    def add_payment(self, order: Order, **fields) -> Payment:
        payment = Payment(order_id=order.id, **fields)
        self.db.add(payment)
        self.db.flush()
        return payment

    def record_attempt(self, **fields) -> PaymentAttempt:
        attempt = PaymentAttempt(**fields)
        self.db.add(attempt)
        self.db.flush()
        return attempt
