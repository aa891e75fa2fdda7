import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shared.constants.roles import Role
from shared.database.postgres import Base

from .enums import user_role_enum


class User(Base):
    """Local mirror of an identity-provider subject.

    Profile fields are owned by the identity provider and only written from
    its webhooks. Deletion is soft: PII is redacted and ``deleted_at`` is
    stamped so purchases keep a valid ``user_id``.
    """

    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    external_user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    role: Mapped[Role] = mapped_column(user_role_enum, nullable=False, default=Role.USER)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
