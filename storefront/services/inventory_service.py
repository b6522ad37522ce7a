from typing import Optional, Tuple

from sqlalchemy.orm import Session

from storefront.errors import InsufficientInventory, InvalidQuantity, NotFound
from storefront.models.product import Product, ProductVariant
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.locks import named_lock, product_lock_name
from storefront.utils.logging import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)


class InventoryService:
    """
    Effective availability and stock movements.

    A variant line is limited by both counters: availability is
    min(product, variant), and a sale decrements both.
    """

    def __init__(self, db: Session):
        self.db = db
        self.products = ProductRepository(db)

    def resolve(
        self, product_id: int, variant_id: Optional[int] = None, for_update: bool = False
    ) -> Tuple[Product, Optional[ProductVariant]]:
        product = self.products.get(product_id, for_update=for_update)
        if product is None:
            raise NotFound("Product", product_id)
        variant = None
        if variant_id is not None:
            variant = self.products.get_variant(product_id, variant_id, for_update=for_update)
            if variant is None:
                raise NotFound("Variant", variant_id)
        return product, variant

    @staticmethod
    def effective_available(product: Product, variant: Optional[ProductVariant] = None) -> int:
        available = product.available_quantity or 0
        if variant is not None:
            available = min(available, variant.available_quantity or 0)
        return max(0, available)

    @staticmethod
    def unit_price(product: Product, variant: Optional[ProductVariant] = None) -> int:
        price = product.price_cents or 0
        if variant is not None:
            price += variant.additional_price_cents or 0
        return price

    def available_quantity(self, product_id: int, variant_id: Optional[int] = None) -> int:
        with smart_transaction(self.db):
            product, variant = self.resolve(product_id, variant_id)
            return self.effective_available(product, variant)

    def check(self, product: Product, variant: Optional[ProductVariant], requested: int) -> int:
        available = self.effective_available(product, variant)
        if available <= 0 or requested > available:
            raise InsufficientInventory(
                product.id, requested, available, variant_id=variant.id if variant else None
            )
        return available

    def decrement(self, product: Product, variant: Optional[ProductVariant], quantity: int):
        """Decrement stock for a sold line. Rows must already be locked by the caller."""
        self.check(product, variant, quantity)
        product.available_quantity -= quantity
        if variant is not None:
            variant.available_quantity -= quantity
        self.db.flush()

    def restock(self, product_id: int, quantity: int, variant_id: Optional[int] = None) -> int:
        """Add stock to a product (and variant). Returns the new effective availability."""
        if quantity < 1:
            raise InvalidQuantity(quantity, "restock amount must be positive")
        with named_lock(product_lock_name(product_id)):
            with smart_transaction(self.db):
                product, variant = self.resolve(product_id, variant_id, for_update=True)
                product.available_quantity += quantity
                if variant is not None:
                    variant.available_quantity += quantity
                self.db.flush()
                available = self.effective_available(product, variant)
        log.info("Restocked product=%s variant=%s by %d", product_id, variant_id, quantity)
        return available
