from typing import Optional

from pydantic import BaseModel, Field


class AvailabilityOut(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    available_quantity: int


class RestockIn(BaseModel):
    quantity: int = Field(..., ge=1)
    variant_id: Optional[int] = None
