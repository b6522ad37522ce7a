from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.errors import InvalidQuantity, NotFound
from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem
from storefront.repositories.cart_repo import CartRepository
from storefront.schemas.cart_schema import (
    CartLineOut,
    CartMetadataOut,
    CartOut,
    InvalidItemOut,
    InventoryReportOut,
    RemoveResultOut,
)
from storefront.services.inventory_service import InventoryService
from storefront.utils.clock import as_utc, utcnow
from storefront.utils.locks import cart_lock_name, named_lock
from storefront.utils.logging import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)


def check_line_quantity(quantity: int):
    if quantity < 1:
        raise InvalidQuantity(quantity, "must be at least 1")
    if quantity > settings.MAX_LINE_QUANTITY:
        raise InvalidQuantity(quantity, f"at most {settings.MAX_LINE_QUANTITY} per line")


class CartService:
    """
    Authoritative writer of cart rows.

    Every public method is one transaction. Mutations for a user hold that
    user's cart lock for the whole transaction, so the read of the current
    line quantity and the write of the new one can't interleave with another
    request for the same cart.
    """

    def __init__(self, db: Session):
        self.db = db
        self.carts = CartRepository(db)
        self.inventory = InventoryService(db)

    # ---- helpers (caller holds the transaction) ----

    def _get_or_create(self, user_id: str) -> Cart:
        cart = self.carts.get_by_user(user_id)
        if cart is None:
            cart = self.carts.create(user_id)
            log.info("Created cart %s for user %s", cart.id, user_id)
        return cart

    def _is_stale(self, cart: Cart) -> bool:
        cutoff = utcnow() - timedelta(days=settings.CART_STALE_DAYS)
        return as_utc(cart.updated_at) < cutoff

    def _line_out(self, item: CartItem) -> CartLineOut:
        product, variant = item.product, item.variant
        available = self.inventory.effective_available(product, variant)
        original_unit = product.original_price_cents or product.price_cents
        if variant is not None:
            original_unit += variant.additional_price_cents or 0
        return CartLineOut(
            id=item.id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            price_cents=item.price_cents,
            name=product.name,
            image=product.image,
            variant_label=variant.label if variant is not None else None,
            original_price_cents=original_unit,
            available_quantity=available,
            is_available=available > 0,
            max_quantity_reached=item.quantity >= available,
        )

    def _cart_out(self, cart: Optional[Cart], user_id: str) -> CartOut:
        if cart is None:
            return CartOut(user_id=user_id)
        lines = [self._line_out(it) for it in self.carts.lines(cart)]
        subtotal = sum(l.price_cents for l in lines)
        original = sum((l.original_price_cents or l.unit_price_cents) * l.quantity for l in lines)
        meta = CartMetadataOut(
            item_count=sum(l.quantity for l in lines),
            unique_item_count=len(lines),
            subtotal_cents=subtotal,
            original_subtotal_cents=original,
            total_savings_cents=max(0, original - subtotal),
            has_unavailable_items=any(not l.is_available for l in lines),
            last_updated=as_utc(cart.updated_at),
        )
        return CartOut(id=cart.id, user_id=user_id, items=lines, metadata=meta)

    def _add(self, cart: Cart, product_id: int, variant_id: Optional[int], quantity: int) -> CartItem:
        check_line_quantity(quantity)
        product, variant = self.inventory.resolve(product_id, variant_id)
        item = self.carts.get_line(cart, product_id, variant_id, for_update=True)
        current = item.quantity if item is not None else 0
        new_quantity = current + quantity
        check_line_quantity(new_quantity)
        self.inventory.check(product, variant, new_quantity)
        unit_price = self.inventory.unit_price(product, variant)
        if item is None:
            item = self.carts.add_line(cart, product_id, variant_id, new_quantity, unit_price)
        else:
            item.set_quantity(new_quantity, unit_price)
        cart.touch()
        self.db.flush()
        return item

    # ---- operations ----

    def get_or_create_cart(self, user_id: str) -> CartOut:
        with named_lock(cart_lock_name(user_id)):
            with smart_transaction(self.db):
                cart = self._get_or_create(user_id)
                return self._cart_out(cart, user_id)

    def get_cart(self, user_id: str) -> CartOut:
        """Return the user's cart, dropping it first if it has gone stale."""
        with named_lock(cart_lock_name(user_id)):
            with smart_transaction(self.db):
                cart = self.carts.get_by_user(user_id)
                if cart is not None and self._is_stale(cart):
                    log.info("Dropping stale cart %s for user %s", cart.id, user_id)
                    self.carts.delete(cart)
                    cart = None
                return self._cart_out(cart, user_id)

    def add_to_cart(
        self, user_id: str, product_id: int, quantity: int = 1, variant_id: Optional[int] = None
    ) -> CartLineOut:
        check_line_quantity(quantity)
        with named_lock(cart_lock_name(user_id)):
            with smart_transaction(self.db):
                cart = self._get_or_create(user_id)
                item = self._add(cart, product_id, variant_id, quantity)
                out = self._line_out(item)
        log.info(
            "add_to_cart user=%s product=%s variant=%s +%d -> %d",
            user_id, product_id, variant_id, quantity, out.quantity,
        )
        return out

    def add_items(self, user_id: str, items: Iterable[Dict]) -> CartOut:
        """Add several lines in one transaction; any failure leaves the cart untouched."""
        items = list(items)
        for entry in items:
            check_line_quantity(int(entry.get("quantity", 1)))
        with named_lock(cart_lock_name(user_id)):
            with smart_transaction(self.db):
                cart = self._get_or_create(user_id)
                for entry in items:
                    self._add(
                        cart,
                        entry["product_id"],
                        entry.get("variant_id"),
                        int(entry.get("quantity", 1)),
                    )
                return self._cart_out(cart, user_id)

    def remove_from_cart(
        self, user_id: str, product_id: int, quantity: int = 1, variant_id: Optional[int] = None
    ) -> RemoveResultOut:
        """
        Decrement a line. A line reaching zero is deleted, and a cart left
        with no lines is deleted too.
        """
        if quantity < 1:
            raise InvalidQuantity(quantity, "must be at least 1")
        with named_lock(cart_lock_name(user_id)):
            with smart_transaction(self.db):
                cart = self.carts.get_by_user(user_id)
                if cart is None:
                    raise NotFound("Cart", user_id)
                item = self.carts.get_line(cart, product_id, variant_id, for_update=True)
                if item is None:
                    raise NotFound("Cart item", product_id)
                remaining = item.quantity - quantity
                result = RemoveResultOut()
                if remaining <= 0:
                    self.carts.delete_line(cart, item)
                    result.line_deleted = True
                else:
                    item.set_quantity(remaining, item.unit_price_cents)
                    self.db.flush()
                    result.item = self._line_out(item)
                if not self.carts.lines(cart):
                    self.carts.delete(cart)
                    result.cart_deleted = True
                else:
                    cart.touch()
                return result

    def update_quantities(self, user_id: str, updates: List[Dict]) -> CartOut:
        """Set several line quantities at once, each checked against its own stock."""
        for u in updates:
            check_line_quantity(int(u["quantity"]))
        with named_lock(cart_lock_name(user_id)):
            with smart_transaction(self.db):
                cart = self.carts.get_by_user(user_id)
                if cart is None:
                    raise NotFound("Cart", user_id)
                for u in updates:
                    item = self.carts.get_line_by_id(cart, int(u["item_id"]), for_update=True)
                    if item is None:
                        raise NotFound("Cart item", u["item_id"])
                    quantity = int(u["quantity"])
                    product, variant = self.inventory.resolve(item.product_id, item.variant_id)
                    self.inventory.check(product, variant, quantity)
                    item.set_quantity(quantity, self.inventory.unit_price(product, variant))
                cart.touch()
                self.db.flush()
                return self._cart_out(cart, user_id)

    def clear_cart(self, user_id: str) -> bool:
        with named_lock(cart_lock_name(user_id)):
            with smart_transaction(self.db):
                cart = self.carts.get_by_user(user_id)
                if cart is None:
                    return False
                self.carts.delete(cart)
                return True

    def validate_inventory(self, user_id: str) -> InventoryReportOut:
        with smart_transaction(self.db):
            cart = self.carts.get_by_user(user_id)
            invalid = []
            if cart is not None:
                for item in self.carts.lines(cart):
                    available = self.inventory.effective_available(item.product, item.variant)
                    if available <= 0 or item.quantity > available:
                        invalid.append(
                            InvalidItemOut(
                                item_id=item.id,
                                product_id=item.product_id,
                                variant_id=item.variant_id,
                                name=item.product.name,
                                requested_quantity=item.quantity,
                                available_quantity=available,
                            )
                        )
            return InventoryReportOut(is_valid=not invalid, invalid_items=invalid)

    def purge_stale_carts(self, max_age_days: Optional[int] = None) -> List[str]:
        """Delete carts untouched for longer than the staleness window. Returns their user ids."""
        days = settings.CART_STALE_DAYS if max_age_days is None else max_age_days
        cutoff = utcnow() - timedelta(days=days)
        with smart_transaction(self.db):
            user_ids = [c.user_id for c in self.carts.stale_carts(cutoff)]
        purged = []
        for user_id in user_ids:
            with named_lock(cart_lock_name(user_id)):
                with smart_transaction(self.db):
                    # re-check under the lock; the cart may have been touched meanwhile
                    for cart in self.carts.stale_carts(cutoff, user_id=user_id):
                        self.carts.delete(cart)
                        purged.append(user_id)
        if purged:
            log.info("Purged %d stale carts", len(purged))
        return purged
