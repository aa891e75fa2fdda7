"""Products router — HTTP layer only.

Public catalogue reads, ownership checks for the signed-in user, and admin
product management. Delegates to the controller.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursemart.database import get_db
from coursemart.dependencies import get_current_user, require_admin
from coursemart.products import controller
from coursemart.products.schemas import (
    CreateProductRequest,
    OwnershipResponse,
    ProductResponse,
    UpdateProductRequest,
)
from shared.models.user import CurrentUser

router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "",
    response_model=list[ProductResponse],
    summary="List public products",
)
async def list_public_products(db: AsyncSession = Depends(get_db)) -> list[ProductResponse]:
    return await controller.list_public_products(db)


@router.get(
    "/admin",
    response_model=list[ProductResponse],
    summary="List every product (admin only)",
)
async def list_products(
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> list[ProductResponse]:
    return await controller.list_products(db)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product with its bundled course ids",
)
async def get_product(product_id: UUID, db: AsyncSession = Depends(get_db)) -> ProductResponse:
    return await controller.get_product(db, product_id)


@router.get(
    "/{product_id}/ownership",
    response_model=OwnershipResponse,
    summary="Whether the current user holds a non-refunded purchase of the product",
)
async def get_ownership(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> OwnershipResponse:
    return await controller.get_ownership(db, user.id, product_id)


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a product bundling one or more courses (admin only)",
)
async def create_product(
    body: CreateProductRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> ProductResponse:
    return await controller.create_product(db, body)


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update a product (admin only)",
    description="Sending ``course_ids`` replaces the bundled courses.",
)
async def update_product(
    product_id: UUID,
    body: UpdateProductRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> ProductResponse:
    return await controller.update_product(db, product_id, body)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product (admin only)",
)
async def delete_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> None:
    await controller.delete_product(db, product_id)
