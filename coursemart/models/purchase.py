import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database.postgres import Base


class Purchase(Base):
    __tablename__ = "purchases"

    purchase_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Payment provider's payment id; unique so replayed webhooks cannot double-record
    payment_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    price_paid_in_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    # Snapshot of the product at purchase time, never updated afterwards
    product_details: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("products.product_id", ondelete="RESTRICT"),
        nullable=False,
    )
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", lazy="noload")
    product = relationship("Product", lazy="noload")

    __table_args__ = (
        Index("ix_purchases_user_id", "user_id"),
        Index("ix_purchases_created_at", "created_at"),
    )
