"""Purchase Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    purchase_id: UUID
    product_id: UUID
    price_paid_in_cents: int
    product_details: dict[str, Any] = Field(
        description="Product as it was when bought: id, name, description, image_url, price_in_dollars.",
    )
    refunded_at: datetime | None
    created_at: datetime


class SaleResponse(PurchaseResponse):
    user_id: UUID
    customer_name: str | None = None
    customer_email: str | None = None


class SaleListResponse(BaseModel):
    items: list[SaleResponse]
    total: int
    limit: int
    offset: int


class SalesSummaryResponse(BaseModel):
    net_sales: float = Field(description="Sum of non-refunded purchases, in dollars.")
    total_refunds: float = Field(description="Sum of refunded purchases, in dollars.")
    net_purchases: int
    refunded_purchases: int
    average_net_purchases_per_customer: float
    total_students: int
    total_courses: int
