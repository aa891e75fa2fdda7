"""Purchase service — fulfillment writes and purchase read models.

``grant_course_access`` and ``insert_purchase`` are idempotent: replaying them
with the same keys leaves the database unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coursemart.exceptions import NotFoundError
from coursemart.models.course import Course
from coursemart.models.product import Product
from coursemart.models.purchase import Purchase
from coursemart.models.user_course_access import UserCourseAccess
from shared.database.postgres import insert_for


# ---------------------------------------------------------------------------
# Fulfillment primitives
# ---------------------------------------------------------------------------


async def grant_course_access(
    db: AsyncSession, user_id: UUID, course_ids: Iterable[UUID]
) -> int:
    """Give ``user_id`` access to every course; existing grants are left alone.

    Returns the number of new grants.
    """
    ids = list(dict.fromkeys(course_ids))
    if not ids:
        return 0
    now = datetime.now(timezone.utc)
    stmt = (
        insert_for(db, UserCourseAccess)
        .values([{"user_id": user_id, "course_id": cid, "created_at": now} for cid in ids])
        .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
    )
    result = await db.execute(stmt)
    return max(result.rowcount or 0, 0)


def snapshot_product(product: Product) -> dict:
    return {
        "id": str(product.product_id),
        "name": product.name,
        "description": product.description,
        "image_url": product.image_url,
        "price_in_dollars": product.price_in_dollars,
    }


async def insert_purchase(
    db: AsyncSession,
    *,
    payment_session_id: str,
    price_paid_in_cents: int,
    product_details: dict,
    user_id: UUID,
    product_id: UUID,
) -> bool:
    """Record a purchase. Returns ``False`` when ``payment_session_id`` was already recorded."""
    now = datetime.now(timezone.utc)
    stmt = (
        insert_for(db, Purchase)
        .values(
            purchase_id=uuid4(),
            payment_session_id=payment_session_id,
            price_paid_in_cents=price_paid_in_cents,
            product_details=product_details,
            user_id=user_id,
            product_id=product_id,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["payment_session_id"])
        .returning(Purchase.purchase_id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def user_owns_product(db: AsyncSession, user_id: UUID, product_id: UUID) -> bool:
    result = await db.execute(
        select(Purchase.purchase_id).where(
            Purchase.user_id == user_id,
            Purchase.product_id == product_id,
            Purchase.refunded_at.is_(None),
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def user_has_course_access(db: AsyncSession, user_id: UUID, course_id: UUID) -> bool:
    return await db.get(UserCourseAccess, (user_id, course_id)) is not None


async def list_user_purchases(db: AsyncSession, user_id: UUID) -> list[Purchase]:
    result = await db.execute(
        select(Purchase)
        .where(Purchase.user_id == user_id)
        .order_by(Purchase.created_at.desc())
    )
    return list(result.scalars().all())


async def get_user_purchase(db: AsyncSession, user_id: UUID, purchase_id: UUID) -> Purchase:
    result = await db.execute(
        select(Purchase).where(Purchase.purchase_id == purchase_id, Purchase.user_id == user_id)
    )
    purchase = result.scalar_one_or_none()
    if purchase is None:
        raise NotFoundError("Purchase", purchase_id)
    return purchase


async def list_sales(db: AsyncSession, *, limit: int, offset: int) -> tuple[list[Purchase], int]:
    total = (await db.execute(select(func.count(Purchase.purchase_id)))).scalar_one()
    result = await db.execute(
        select(Purchase)
        .options(selectinload(Purchase.user))
        .order_by(Purchase.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def sales_summary(db: AsyncSession) -> dict:
    """Dashboard figures; refunded purchases are reported apart from net sales."""
    refunded = Purchase.refunded_at.is_not(None)
    row = (
        await db.execute(
            select(
                func.coalesce(
                    func.sum(case((refunded, 0), else_=Purchase.price_paid_in_cents)), 0
                ),
                func.coalesce(
                    func.sum(case((refunded, Purchase.price_paid_in_cents), else_=0)), 0
                ),
                func.count(case((refunded, None), else_=Purchase.purchase_id)),
                func.count(case((refunded, Purchase.purchase_id), else_=None)),
                func.count(func.distinct(case((refunded, None), else_=Purchase.user_id))),
            )
        )
    ).one()
    net_cents, refund_cents, net_purchases, refunded_purchases, paying_users = row

    total_students = (
        await db.execute(select(func.count(func.distinct(UserCourseAccess.user_id))))
    ).scalar_one()
    total_courses = (await db.execute(select(func.count(Course.course_id)))).scalar_one()

    return {
        "net_sales": net_cents / 100,
        "total_refunds": refund_cents / 100,
        "net_purchases": net_purchases,
        "refunded_purchases": refunded_purchases,
        "average_net_purchases_per_customer": (
            net_purchases / paying_users if paying_users else 0
        ),
        "total_students": total_students,
        "total_courses": total_courses,
    }
