from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from storefront.models.product import Product, ProductVariant


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int, for_update: bool = False) -> Optional[Product]:
        qry = self.db.query(Product).filter(Product.id == product_id, Product.active == True)
        if for_update:
            qry = qry.with_for_update()
        return qry.first()

    def get_by_sku(self, sku: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.sku == sku).first()

    def get_variant(
        self, product_id: int, variant_id: int, for_update: bool = False
    ) -> Optional[ProductVariant]:
        qry = self.db.query(ProductVariant).filter(
            ProductVariant.id == variant_id, ProductVariant.product_id == product_id
        )
        if for_update:
            qry = qry.with_for_update()
        return qry.first()

    def lock_many(self, product_ids: Iterable[int]) -> List[Product]:
        """Lock product rows in ascending id order."""
        ids = sorted(set(product_ids))
        if not ids:
            return []
        return (
            self.db.query(Product)
            .filter(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .all()
        )

    def create_or_update(
        self,
        sku: str,
        name: str,
        price_cents: int,
        available_quantity: int = 0,
        description: str = None,
        image: str = None,
        original_price_cents: int = None,
        active: bool = True,
    ) -> Product:
        p = self.get_by_sku(sku)
        if p is None:
            p = Product(sku=sku)
            self.db.add(p)
        p.name = name
        p.price_cents = price_cents
        p.available_quantity = available_quantity
        p.description = description
        p.image = image
        p.original_price_cents = original_price_cents
        p.active = active
        self.db.flush()
        return p

    def upsert_variant(
        self,
        product: Product,
        name: str,
        value: str,
        additional_price_cents: int = 0,
        available_quantity: int = 0,
    ) -> ProductVariant:
        v = (
            self.db.query(ProductVariant)
            .filter(
                ProductVariant.product_id == product.id,
                ProductVariant.name == name,
                ProductVariant.value == value,
            )
            .first()
        )
        if v is None:
            v = ProductVariant(product_id=product.id, name=name, value=value)
            self.db.add(v)
        v.additional_price_cents = additional_price_cents
        v.available_quantity = available_quantity
        self.db.flush()
        return v
