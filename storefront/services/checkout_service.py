from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from storefront.adapters.mock_payment import MockPaymentAdapter, validate_payment_details
from storefront.errors import CheckoutFailed, EmptyCart, NotFound, StorefrontError
from storefront.models.cart_item import CartItem
from storefront.models.order import OrderStatus
from storefront.models.payment import PaymentMethod, PaymentStatus
from storefront.pricing import Totals, compute_totals
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.schemas.checkout_schema import CheckoutLineOut, CheckoutSummaryOut, OrderOut
from storefront.services.inventory_service import InventoryService
from storefront.utils.locks import cart_lock_name, named_lock, ordered_locks, product_lock_name
from storefront.utils.logging import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)


class PaymentNotCaptured(Exception):
    """Internal signal that aborts the checkout transaction after a declined charge."""


class CheckoutService:
    def __init__(self, db: Session, gateway=None):
        self.db = db
        self.carts = CartRepository(db)
        self.orders = OrderRepository(db)
        self.inventory = InventoryService(db)
        self.gateway = gateway or MockPaymentAdapter()

    def _priced_lines(self, lines: List[CartItem], for_update: bool = False) -> List[Tuple]:
        """
        Re-validate every line against current stock. Lines keep the unit price
        the cart recorded for them. Raises InsufficientInventory on the first short line.
        """
        priced = []
        for item in lines:
            product, variant = self.inventory.resolve(
                item.product_id, item.variant_id, for_update=for_update
            )
            self.inventory.check(product, variant, item.quantity)
            priced.append((item, product, variant, item.unit_price_cents))
        return priced

    @staticmethod
    def _line_out(item, product, variant, unit) -> CheckoutLineOut:
        return CheckoutLineOut(
            product_id=product.id,
            variant_id=variant.id if variant is not None else None,
            name=product.name,
            quantity=item.quantity,
            unit_price_cents=unit,
            price_cents=unit * item.quantity,
        )

    def _cart_lines(self, user_id: str) -> List[CartItem]:
        cart = self.carts.get_by_user(user_id)
        lines = self.carts.lines(cart) if cart is not None else []
        if not lines:
            raise EmptyCart(user_id)
        return lines

    def initialize_checkout(self, user_id: str) -> CheckoutSummaryOut:
        """Price the cart for the order summary. Persists nothing."""
        with smart_transaction(self.db):
            lines = [self._line_out(*p) for p in self._priced_lines(self._cart_lines(user_id))]
        totals = compute_totals(sum(l.price_cents for l in lines))
        return CheckoutSummaryOut(
            items=lines,
            subtotal_cents=totals.subtotal_cents,
            shipping_cents=totals.shipping_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
        )

    def _place_order(
        self, user_id: str, shipping_address_id: int, method: PaymentMethod, details: Dict, attempt: Dict
    ) -> OrderOut:
        # 1. re-fetch and re-validate the cart with product rows locked
        lines = self._cart_lines(user_id)
        if self.orders.get_address(shipping_address_id, user_id) is None:
            raise NotFound("Address", shipping_address_id)
        self.inventory.products.lock_many(item.product_id for item in lines)
        priced = self._priced_lines(lines, for_update=True)
        out_lines = [self._line_out(*p) for p in priced]
        totals: Totals = compute_totals(sum(l.price_cents for l in out_lines))
        attempt["amount_cents"] = totals.total_cents

        # 2. order in PENDING
        order = self.orders.create_order(user_id, shipping_address_id, totals)

        # 3. frozen line snapshots
        for line in out_lines:
            self.orders.add_item(
                order,
                product_id=line.product_id,
                variant_id=line.variant_id,
                product_name=line.name,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                price_cents=line.price_cents,
            )

        # 4. stock
        for item, product, variant, _unit in priced:
            self.inventory.decrement(product, variant, item.quantity)

        # 5. charge
        result = self.gateway.execute(method, details, totals.total_cents)

        # 6. payment row
        self.orders.add_payment(
            order,
            method=method,
            status=PaymentStatus.SUCCESS if result.success else PaymentStatus.FAILED,
            amount_cents=totals.total_cents,
            transaction_id=result.transaction_id,
        )

        # 7. settle or abort
        if not result.success:
            raise PaymentNotCaptured(result.message or "Payment declined")
        order.status = OrderStatus.PAID

        # 8. the cart is consumed
        cart = self.carts.get_by_user(user_id)
        self.carts.delete(cart)
        self.db.flush()

        return OrderOut(
            order_id=order.id,
            order_number=order.order_number,
            status=order.status,
            subtotal_cents=order.subtotal_cents,
            shipping_cents=order.shipping_cents,
            tax_cents=order.tax_cents,
            total_cents=order.total_cents,
            transaction_id=result.transaction_id,
            items=out_lines,
        )

    def process_payment(
        self,
        user_id: str,
        shipping_address_id: int,
        method,
        details: Optional[Dict] = None,
    ) -> OrderOut:
        """
        Turn the user's cart into a paid order in a single transaction.

        Either every write lands (order, items, stock, payment, cart removal)
        or none does. Failures surface as CheckoutFailed and are recorded in
        the payment attempt ledger. Never retried here.
        """
        method = PaymentMethod(method)
        details = details or {}
        validate_payment_details(method, details)
        attempt = {"amount_cents": 0}

        try:
            with named_lock(cart_lock_name(user_id)):
                with smart_transaction(self.db):
                    product_ids = [item.product_id for item in self._cart_lines(user_id)]
                with ordered_locks(product_lock_name(pid) for pid in product_ids):
                    with smart_transaction(self.db):
                        order = self._place_order(
                            user_id, shipping_address_id, method, details, attempt
                        )
        except (PaymentNotCaptured, StorefrontError) as e:
            self._record_failure(user_id, method, attempt["amount_cents"], str(e))
            raise CheckoutFailed(str(e)) from e
        except Exception as e:
            log.exception("Unexpected checkout error for user %s", user_id)
            self._record_failure(user_id, method, attempt["amount_cents"], str(e))
            raise CheckoutFailed("Failed to process checkout") from e

        log.info(
            "Order %s placed for user %s total=%d",
            order.order_number, user_id, order.total_cents,
        )
        return order

    def _record_failure(self, user_id: str, method: PaymentMethod, amount_cents: int, message: str):
        log.warning("Checkout failed for user %s: %s", user_id, message)
        with smart_transaction(self.db):
            self.orders.record_attempt(
                user_id=user_id,
                method=method,
                status=PaymentStatus.FAILED,
                amount_cents=amount_cents,
                message=message[:512],
            )
