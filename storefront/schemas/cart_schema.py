from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CartLineOut(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    unit_price_cents: int
    price_cents: int
    name: str
    image: Optional[str] = None
    variant_label: Optional[str] = None
    original_price_cents: Optional[int] = None
    available_quantity: int
    is_available: bool
    max_quantity_reached: bool


class CartMetadataOut(BaseModel):
    item_count: int = 0
    unique_item_count: int = 0
    subtotal_cents: int = 0
    original_subtotal_cents: int = 0
    total_savings_cents: int = 0
    has_unavailable_items: bool = False
    last_updated: Optional[datetime] = None


class CartOut(BaseModel):
    id: Optional[int] = None
    user_id: str
    items: List[CartLineOut] = Field(default_factory=list)
    metadata: CartMetadataOut = Field(default_factory=CartMetadataOut)


class AddItemIn(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(1, ge=1)


class BulkAddIn(BaseModel):
    items: List[AddItemIn]


class RemoveItemIn(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(1, ge=1)


class QuantityUpdate(BaseModel):
    item_id: int
    quantity: int


class UpdateQuantitiesIn(BaseModel):
    updates: List[QuantityUpdate]


class InvalidItemOut(BaseModel):
    item_id: int
    product_id: int
    variant_id: Optional[int] = None
    name: str
    requested_quantity: int
    available_quantity: int


class InventoryReportOut(BaseModel):
    is_valid: bool
    invalid_items: List[InvalidItemOut] = Field(default_factory=list)


class RemoveResultOut(BaseModel):
    item: Optional[CartLineOut] = None
    line_deleted: bool = False
    cart_deleted: bool = False
