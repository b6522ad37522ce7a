from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from storefront.db import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    image = Column(String(512), nullable=True)
    price_cents = Column(Integer, nullable=False, default=0)
    # list price before discount; shown as the struck-through price
    original_price_cents = Column(Integer, nullable=True)
    available_quantity = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, default=True, nullable=False)

    variants = relationship(
        "ProductVariant", back_populates="product", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Product id={self.id} sku={self.sku} available={self.available_quantity}>"


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(64), nullable=False)  # e.g. "Size"
    value = Column(String(64), nullable=False)  # e.g. "M"
    additional_price_cents = Column(Integer, nullable=False, default=0)
    available_quantity = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="variants")

    @property
    def label(self) -> str:
        return f"{self.name}: {self.value}"
