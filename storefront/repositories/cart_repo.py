from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.models.cart import Cart
from storefront.models.cart_item import CartItem


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: str) -> Optional[Cart]:
        return self.db.query(Cart).filter(Cart.user_id == user_id).first()

    def create(self, user_id: str) -> Cart:
        c = Cart(user_id=user_id)
        self.db.add(c)
        self.db.flush()
        return c

    def get_line(
        self, cart: Cart, product_id: int, variant_id: Optional[int], for_update: bool = False
    ) -> Optional[CartItem]:
        qry = self.db.query(CartItem).filter(
            CartItem.cart_id == cart.id, CartItem.product_id == product_id
        )
        if variant_id is None:
            qry = qry.filter(CartItem.variant_id.is_(None))
        else:
            qry = qry.filter(CartItem.variant_id == variant_id)
        if for_update:
            qry = qry.with_for_update()
        return qry.first()

    def get_line_by_id(self, cart: Cart, item_id: int, for_update: bool = False) -> Optional[CartItem]:
        qry = self.db.query(CartItem).filter(CartItem.id == item_id, CartItem.cart_id == cart.id)
        if for_update:
            qry = qry.with_for_update()
        return qry.first()

    def lines(self, cart: Cart, for_update: bool = False) -> List[CartItem]:
        qry = self.db.query(CartItem).filter(CartItem.cart_id == cart.id).order_by(CartItem.id)
        if for_update:
            qry = qry.with_for_update()
        return qry.all()

    def add_line(
        self,
        cart: Cart,
        product_id: int,
        variant_id: Optional[int],
        quantity: int,
        unit_price_cents: int,
    ) -> CartItem:
        item = CartItem(cart_id=cart.id, product_id=product_id, variant_id=variant_id)
        item.set_quantity(quantity, unit_price_cents)
        self.db.add(item)
        cart.items.append(item)
        self.db.flush()
        return item

    def delete_line(self, cart: Cart, item: CartItem):
        if item in cart.items:
            cart.items.remove(item)
        self.db.delete(item)
        self.db.flush()

    def delete(self, cart: Cart):
        self.db.delete(cart)
        self.db.flush()

    def stale_carts(self, cutoff: datetime, user_id: Optional[str] = None) -> List[Cart]:
        qry = self.db.query(Cart).filter(Cart.updated_at < cutoff)
        if user_id is not None:
            qry = qry.filter(Cart.user_id == user_id)
        return qry.all()
