"""Product Pydantic V2 schemas. Request models are separate from responses."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coursemart.models.enums import ProductStatus


class CreateProductRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=300)
    description: str = Field(min_length=1)
    image_url: str = Field(min_length=1, max_length=500)
    price_in_dollars: int = Field(ge=0, description="Whole dollars.")
    status: ProductStatus = ProductStatus.PRIVATE
    course_ids: list[UUID] = Field(min_length=1, description="Courses bundled in the product.")
    payment_product_id: str | None = Field(default=None, max_length=255)


class UpdateProductRequest(BaseModel):
    """Partial update. ``course_ids``, when sent, replaces the bundled courses."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = Field(default=None, min_length=1)
    image_url: str | None = Field(default=None, min_length=1, max_length=500)
    price_in_dollars: int | None = Field(default=None, ge=0)
    status: ProductStatus | None = None
    course_ids: list[UUID] | None = Field(default=None, min_length=1)
    payment_product_id: str | None = Field(default=None, max_length=255)

    @field_validator("name", "description", "image_url", "price_in_dollars", "status", "course_ids")
    @classmethod
    def not_null(cls, v):
        # Only payment_product_id may be cleared with an explicit null
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    name: str
    description: str
    image_url: str
    price_in_dollars: int
    status: ProductStatus
    payment_product_id: str | None
    course_ids: list[UUID]
    created_at: datetime
    updated_at: datetime


class OwnershipResponse(BaseModel):
    product_id: UUID
    owned: bool
