"""Purchases router — the signed-in user's purchases and the admin sales views."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from coursemart.database import get_db
from coursemart.dependencies import get_current_user, require_admin
from coursemart.purchases import controller
from coursemart.purchases.schemas import (
    PurchaseResponse,
    SaleListResponse,
    SalesSummaryResponse,
)
from shared.models.user import CurrentUser

router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.get(
    "/me",
    response_model=list[PurchaseResponse],
    summary="List the current user's purchases, newest first",
)
async def list_my_purchases(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[PurchaseResponse]:
    return await controller.list_my_purchases(db, user.id)


@router.get(
    "/me/{purchase_id}",
    response_model=PurchaseResponse,
    summary="Get one of the current user's purchases",
)
async def get_my_purchase(
    purchase_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> PurchaseResponse:
    return await controller.get_my_purchase(db, user.id, purchase_id)


@router.get(
    "/sales",
    response_model=SaleListResponse,
    summary="List all sales (admin only)",
)
async def list_sales(
    limit: int = Query(20, ge=1, le=100, description="Items per page."),
    offset: int = Query(0, ge=0, description="Number of items to skip."),
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> SaleListResponse:
    return await controller.list_sales(db, limit=limit, offset=offset)


@router.get(
    "/sales/summary",
    response_model=SalesSummaryResponse,
    summary="Sales totals for the admin dashboard",
)
async def sales_summary(
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> SalesSummaryResponse:
    return await controller.sales_summary(db)
