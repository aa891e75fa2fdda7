"""Products controller — maps service results to HTTP responses, catches domain exceptions."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursemart.exceptions import ConflictError, NotFoundError, ValidationError
from coursemart.products import service
from coursemart.products.schemas import (
    CreateProductRequest,
    OwnershipResponse,
    ProductResponse,
    UpdateProductRequest,
)
from coursemart.purchases import service as purchase_service

logger = logging.getLogger(__name__)


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    logger.exception("Unhandled products error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def create_product(db: AsyncSession, body: CreateProductRequest) -> ProductResponse:
    try:
        product = await service.create_product(db, **body.model_dump())
        return ProductResponse.model_validate(product)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def update_product(
    db: AsyncSession, product_id: UUID, body: UpdateProductRequest
) -> ProductResponse:
    try:
        product = await service.update_product(
            db, product_id, **body.model_dump(exclude_unset=True)
        )
        return ProductResponse.model_validate(product)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def delete_product(db: AsyncSession, product_id: UUID) -> None:
    try:
        await service.delete_product(db, product_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def get_product(db: AsyncSession, product_id: UUID) -> ProductResponse:
    try:
        product = await service.get_product(db, product_id)
        return ProductResponse.model_validate(product)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def list_public_products(db: AsyncSession) -> list[ProductResponse]:
    products = await service.list_public_products(db)
    return [ProductResponse.model_validate(p) for p in products]


async def list_products(db: AsyncSession) -> list[ProductResponse]:
    products = await service.list_products(db)
    return [ProductResponse.model_validate(p) for p in products]


async def get_ownership(db: AsyncSession, user_id: UUID, product_id: UUID) -> OwnershipResponse:
    try:
        await service.get_product(db, product_id)
        owned = await purchase_service.user_owns_product(db, user_id, product_id)
        return OwnershipResponse(product_id=product_id, owned=owned)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
