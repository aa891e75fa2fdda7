"""User Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from shared.constants.roles import Role


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    external_user_id: str
    email: str
    name: str
    role: Role
    image_url: str | None
    created_at: datetime
