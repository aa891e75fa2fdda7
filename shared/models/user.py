from uuid import UUID

from pydantic import BaseModel, ConfigDict

from shared.constants.roles import Role


class CurrentUser(BaseModel):
    """User context from the bearer token."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: UUID
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
