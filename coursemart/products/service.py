"""Product service — sellable bundles of courses.

A product's course links are written together with the product row; an
update replaces the whole link set.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursemart.exceptions import ConflictError, NotFoundError, ValidationError
from coursemart.models.course import Course
from coursemart.models.enums import ProductStatus
from coursemart.models.product import CourseProduct, Product


async def _check_courses_exist(db: AsyncSession, course_ids: list[UUID]) -> None:
    if not course_ids:
        return
    result = await db.execute(select(Course.course_id).where(Course.course_id.in_(course_ids)))
    missing = set(course_ids) - set(result.scalars().all())
    if missing:
        raise ValidationError(
            "Unknown course ids: " + ", ".join(sorted(str(c) for c in missing))
        )


async def get_product(db: AsyncSession, product_id: UUID) -> Product:
    """Load a product together with its bundled course ids."""
    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


async def list_public_products(db: AsyncSession) -> list[Product]:
    result = await db.execute(
        select(Product)
        .where(Product.status == ProductStatus.PUBLIC)
        .order_by(Product.name)
    )
    return list(result.scalars().all())


async def list_products(db: AsyncSession) -> list[Product]:
    result = await db.execute(select(Product).order_by(Product.created_at.desc()))
    return list(result.scalars().all())


async def create_product(
    db: AsyncSession,
    *,
    name: str,
    description: str,
    image_url: str,
    price_in_dollars: int,
    status: ProductStatus,
    course_ids: list[UUID],
    payment_product_id: str | None = None,
) -> Product:
    course_ids = list(dict.fromkeys(course_ids))
    await _check_courses_exist(db, course_ids)
    product = Product(
        name=name,
        description=description,
        image_url=image_url,
        price_in_dollars=price_in_dollars,
        status=status,
        payment_product_id=payment_product_id,
        course_products=[CourseProduct(course_id=cid) for cid in course_ids],
    )
    db.add(product)
    await db.flush()
    return product


async def update_product(db: AsyncSession, product_id: UUID, **fields) -> Product:
    """Apply the given fields. ``course_ids``, when present, replaces every link."""
    product = await get_product(db, product_id)

    course_ids = fields.pop("course_ids", None)
    for key, value in fields.items():
        setattr(product, key, value)

    if course_ids is not None:
        course_ids = list(dict.fromkeys(course_ids))
        await _check_courses_exist(db, course_ids)
        keep = set(course_ids)
        existing = set(product.course_ids)
        product.course_products = [
            cp for cp in product.course_products if cp.course_id in keep
        ] + [CourseProduct(course_id=cid) for cid in course_ids if cid not in existing]

    await db.flush()
    return product


async def delete_product(db: AsyncSession, product_id: UUID) -> None:
    product = await get_product(db, product_id)
    await db.delete(product)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            "Product has purchases and cannot be deleted; make it private instead."
        ) from exc
