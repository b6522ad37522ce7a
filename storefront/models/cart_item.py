from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, UniqueConstraint, text
from sqlalchemy.orm import relationship

from storefront.db import Base
from storefront.utils.clock import utcnow


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "variant_id", name="uq_cart_line"),
        # uq_cart_line treats NULL variant_ids as distinct
        Index(
            "uq_cart_line_no_variant",
            "cart_id",
            "product_id",
            unique=True,
            sqlite_where=text("variant_id IS NULL"),
            postgresql_where=text("variant_id IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(
        Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    # product price + variant surcharge at the time the line was written, in cents
    unit_price_cents = Column(Integer, nullable=False, default=0)
    price_cents = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")
    variant = relationship("ProductVariant")

    def set_quantity(self, quantity: int, unit_price_cents: int):
        self.quantity = quantity
        self.unit_price_cents = unit_price_cents
        self.price_cents = unit_price_cents * quantity
