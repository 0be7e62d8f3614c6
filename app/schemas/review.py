"""Review schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ReviewCreate(BaseModel):
    order_id: int
    product_id: int
    rating: int
    comment: str | None = None


class ReviewRead(BaseModel):
    id: int
    user_id: int
    product_id: int
    order_id: int | None
    rating: int
    comment: str | None
    verified_purchase: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
