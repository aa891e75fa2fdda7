"""Payment-provider event reconciliation.

A one-time ``payment.succeeded`` grants the buyer every course bundled in the
product and records the purchase. Both writes share one transaction and both
are insert-or-ignore, so a redelivered event changes nothing.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursemart.database import transaction
from coursemart.exceptions import ValidationError
from coursemart.products import service as product_service
from coursemart.purchases import service as purchase_service
from coursemart.users import service as user_service
from coursemart.webhooks.schemas import Outcome, PaymentEvent

logger = logging.getLogger(__name__)


def _metadata_uuid(value: str, field: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise ValidationError(f"Payment metadata {field} is not a valid id: {value!r}")


class PaymentEventReconciler:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def handle(self, event: PaymentEvent) -> Outcome:
        data = event.data
        if not data.is_one_time_payment:
            logger.info(
                "Ignoring %s %s (payload_type=%s, subscription=%s)",
                event.type, data.payment_id, data.payload_type, data.subscription_id,
            )
            return Outcome.IGNORED

        user_id = _metadata_uuid(data.metadata.user_id, "userId")
        product_id = _metadata_uuid(data.metadata.product_id, "productId")

        async with transaction(self._session_factory) as db:
            product = await product_service.get_product(db, product_id)
            await user_service.get_user(db, user_id)

            granted = await purchase_service.grant_course_access(
                db, user_id, product.course_ids
            )
            recorded = await purchase_service.insert_purchase(
                db,
                payment_session_id=data.payment_id,
                price_paid_in_cents=data.total_amount,
                product_details=purchase_service.snapshot_product(product),
                user_id=user_id,
                product_id=product_id,
            )

        if not recorded:
            logger.info("Payment %s already fulfilled, replay ignored", data.payment_id)
            return Outcome.REPLAYED
        logger.info(
            "Fulfilled payment %s: user %s bought product %s (%d new course grants)",
            data.payment_id, user_id, product_id, granted,
        )
        return Outcome.APPLIED
