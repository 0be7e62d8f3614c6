"""Catalog schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class ProductCreate(BaseModel):
    name: str
    price: Decimal


class ProductStatusUpdate(BaseModel):
    is_active: bool


class ProductRead(BaseModel):
    id: int
    vendor_id: int
    name: str
    price: Decimal
    is_active: bool
    rating: Decimal
    total_reviews: int

    model_config = ConfigDict(from_attributes=True)
