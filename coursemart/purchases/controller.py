"""Purchases controller — maps service results to HTTP responses."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursemart.exceptions import NotFoundError
from coursemart.purchases import service
from coursemart.purchases.schemas import (
    PurchaseResponse,
    SaleListResponse,
    SaleResponse,
    SalesSummaryResponse,
)

logger = logging.getLogger(__name__)


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    logger.exception("Unhandled purchases error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def list_my_purchases(db: AsyncSession, user_id: UUID) -> list[PurchaseResponse]:
    purchases = await service.list_user_purchases(db, user_id)
    return [PurchaseResponse.model_validate(p) for p in purchases]


async def get_my_purchase(db: AsyncSession, user_id: UUID, purchase_id: UUID) -> PurchaseResponse:
    try:
        purchase = await service.get_user_purchase(db, user_id, purchase_id)
        return PurchaseResponse.model_validate(purchase)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def list_sales(db: AsyncSession, *, limit: int, offset: int) -> SaleListResponse:
    purchases, total = await service.list_sales(db, limit=limit, offset=offset)
    items = []
    for purchase in purchases:
        sale = SaleResponse.model_validate(purchase)
        if purchase.user is not None:
            sale.customer_name = purchase.user.name
            sale.customer_email = purchase.user.email
        items.append(sale)
    return SaleListResponse(items=items, total=total, limit=limit, offset=offset)


async def sales_summary(db: AsyncSession) -> SalesSummaryResponse:
    return SalesSummaryResponse(**await service.sales_summary(db))
