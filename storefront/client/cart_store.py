"""
Client-side cart state.

The store is purely local and synchronous: it applies edits optimistically
and knows nothing about the network. The sync coordinator is the only thing
that reconciles it with the server.
"""
import itertools
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import BaseModel, Field

from storefront.errors import InvalidQuantity, NotFound
from storefront.pricing import shipping_for, tax_for

LineKey = Tuple[int, Optional[int]]


class CartLine(BaseModel):
    # server id, or a negative id for lines the server hasn't seen yet
    id: int = 0
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = 1
    unit_price_cents: int = 0
    name: str = ""
    image: Optional[str] = None
    variant_label: Optional[str] = None
    max_quantity: Optional[int] = None
    error: Optional[str] = None
    is_available: bool = True
    max_quantity_reached: bool = False

    @property
    def key(self) -> LineKey:
        return (self.product_id, self.variant_id)

    @property
    def price_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def is_local(self) -> bool:
        return self.id < 0

    @classmethod
    def from_server(cls, data: Dict) -> "CartLine":
        available = data.get("available_quantity")
        return cls(
            id=data["id"],
            product_id=data["product_id"],
            variant_id=data.get("variant_id"),
            quantity=data["quantity"],
            unit_price_cents=data.get("unit_price_cents", 0),
            name=data.get("name", ""),
            image=data.get("image"),
            variant_label=data.get("variant_label"),
            max_quantity=available,
            is_available=data.get("is_available", True),
            max_quantity_reached=data.get("max_quantity_reached", False),
        )


class CartMetadata(BaseModel):
    item_count: int = 0
    unique_item_count: int = 0
    subtotal_cents: int = 0
    shipping_cents: int = 0
    tax_cents: int = 0
    discount_cents: int = 0
    total_cents: int = 0


class PersistedCart(BaseModel):
    items: List[CartLine] = Field(default_factory=list)
    discount_code: Optional[str] = None
    discount_cents: int = 0


def _availability_error(quantity: int, max_quantity: Optional[int]) -> Optional[str]:
    if max_quantity is None:
        return None
    if max_quantity <= 0:
        return "Out of stock"
    if quantity > max_quantity:
        return f"Only {max_quantity} items available"
    return None


class CartStore:
    def __init__(self, items: Optional[Iterable[CartLine]] = None):
        self._items: List[CartLine] = []
        self._local_ids = itertools.count(-1, -1)
        self.selected: Set[int] = set()
        self.discount_code: Optional[str] = None
        self.discount_cents = 0
        for item in items or []:
            self._items.append(item.model_copy())

    @property
    def items(self) -> List[CartLine]:
        return list(self._items)

    def __len__(self):
        return len(self._items)

    def get_item(self, item_id: int) -> Optional[CartLine]:
        return next((it for it in self._items if it.id == item_id), None)

    def find(self, product_id: int, variant_id: Optional[int] = None) -> Optional[CartLine]:
        key = (product_id, variant_id)
        return next((it for it in self._items if it.key == key), None)

    def next_local_id(self) -> int:
        return next(self._local_ids)

    # ---- edits ----

    def add_item_locally(self, line: CartLine) -> CartLine:
        """Merge into the line with the same (product, variant), or append a new local line."""
        if line.quantity < 1:
            raise InvalidQuantity(line.quantity, "must be at least 1")
        existing = self.find(line.product_id, line.variant_id)
        if existing is not None:
            existing.quantity += line.quantity
            existing.error = _availability_error(existing.quantity, existing.max_quantity)
            return existing
        added = line.model_copy(update={"id": self.next_local_id()})
        self._items.append(added)
        return added

    def remove_item_locally(self, item_id: int) -> Optional[CartLine]:
        item = self.get_item(item_id)
        if item is None:
            return None
        self._items.remove(item)
        self.selected.discard(item_id)
        return item

    def update_quantity_locally(self, item_id: int, quantity: int) -> CartLine:
        if quantity < 1:
            raise InvalidQuantity(quantity, "must be at least 1")
        item = self.get_item(item_id)
        if item is None:
            raise NotFound("Cart item", item_id)
        item.quantity = quantity
        item.error = _availability_error(quantity, item.max_quantity)
        return item

    def adopt_server_line(self, item_id: int, data: Dict) -> Optional[CartLine]:
        """Give a locally added line the id and stock figures the server assigned."""
        item = self.get_item(item_id)
        if item is None:
            return None
        server = CartLine.from_server(data)
        if item_id in self.selected:
            self.selected.discard(item_id)
            self.selected.add(server.id)
        item.id = server.id
        item.max_quantity = server.max_quantity
        item.is_available = server.is_available
        item.max_quantity_reached = item.quantity >= (server.max_quantity or 0)
        return item

    def merge_server_cart(self, server_items: Iterable[Union[CartLine, Dict]]):
        """Replace local state with the server's view."""
        lines = []
        for it in server_items:
            line = it.model_copy() if isinstance(it, CartLine) else CartLine.from_server(it)
            line.error = _availability_error(line.quantity, line.max_quantity)
            lines.append(line)
        self._items = lines
        self.selected &= {it.id for it in lines}

    def clear(self):
        self._items = []
        self.selected.clear()
        self.remove_discount()

    # ---- inventory ----

    def update_item_inventory(self, item_id: int, max_quantity: int):
        item = self.get_item(item_id)
        if item is None:
            return
        item.max_quantity = max_quantity
        item.is_available = max_quantity > 0
        item.max_quantity_reached = item.quantity >= max_quantity
        item.error = _availability_error(item.quantity, max_quantity)

    def validate_inventory(self) -> bool:
        for item in self._items:
            item.error = _availability_error(item.quantity, item.max_quantity)
        return not self.has_errors()

    def has_errors(self) -> bool:
        return any(it.error for it in self._items)

    # ---- selection and discounts ----

    def toggle_selection(self, item_id: int):
        if item_id in self.selected:
            self.selected.discard(item_id)
        elif self.get_item(item_id) is not None:
            self.selected.add(item_id)

    def select_all(self):
        self.selected = {it.id for it in self._items}

    def clear_selection(self):
        self.selected = set()

    def selected_items(self) -> List[CartLine]:
        return [it for it in self._items if it.id in self.selected]

    def apply_discount(self, code: str, amount_cents: int):
        self.discount_code = code
        self.discount_cents = max(0, amount_cents)

    def remove_discount(self):
        self.discount_code = None
        self.discount_cents = 0

    def can_proceed_to_checkout(self) -> bool:
        return bool(self._items) and not self.has_errors()

    # ---- projections ----

    def get_cart_metadata(self) -> CartMetadata:
        """Totals for the current lines. Always recomputed."""
        subtotal = sum(it.price_cents for it in self._items)
        shipping = shipping_for(subtotal) if self._items else 0
        tax = tax_for(subtotal)
        discount = min(self.discount_cents, subtotal + shipping + tax)
        return CartMetadata(
            item_count=sum(it.quantity for it in self._items),
            unique_item_count=len(self._items),
            subtotal_cents=subtotal,
            shipping_cents=shipping,
            tax_cents=tax,
            discount_cents=discount,
            total_cents=subtotal + shipping + tax - discount,
        )

    # ---- persistence ----

    def snapshot(self) -> List[CartLine]:
        return [it.model_copy() for it in self._items]

    def restore(self, snapshot: Iterable[CartLine]):
        self._items = [it.model_copy() for it in snapshot]
        self.selected &= {it.id for it in self._items}

    def dump_json(self) -> str:
        return PersistedCart(
            items=self._items,
            discount_code=self.discount_code,
            discount_cents=self.discount_cents,
        ).model_dump_json()

    @classmethod
    def load_json(cls, raw: str) -> "CartStore":
        data = PersistedCart.model_validate_json(raw)
        store = cls(data.items)
        if data.discount_code:
            store.apply_discount(data.discount_code, data.discount_cents)
        # keep fresh local ids clear of any persisted ones
        lowest = min([it.id for it in store._items if it.id < 0], default=0)
        store._local_ids = itertools.count(lowest - 1, -1)
        return store
