"""Webhook envelopes, one model per event type.

Each provider's events form a tagged union on ``type``. Bodies are parsed only
after signature verification; event types we don't handle parse to ``None``.
"""

from __future__ import annotations

import enum
import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from coursemart.exceptions import ValidationError


class Outcome(str, enum.Enum):
    """What a reconciler did with one delivery."""

    APPLIED = "applied"
    IGNORED = "ignored"
    REPLAYED = "replayed"


# ---------------------------------------------------------------------------
# Identity provider
# ---------------------------------------------------------------------------


class EmailAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email_address: str


class IdentityUserData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    email_addresses: list[EmailAddress] = Field(default_factory=list)
    primary_email_address_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    image_url: str | None = None
    public_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def primary_email(self) -> str | None:
        for address in self.email_addresses:
            if address.id == self.primary_email_address_id:
                return address.email_address
        return None

    @property
    def display_name(self) -> str | None:
        """``first last`` when both are set, otherwise the username."""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.username or None


class DeletedUserData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    deleted: bool = True


class UserCreatedEvent(BaseModel):
    type: Literal["user.created"]
    data: IdentityUserData


class UserUpdatedEvent(BaseModel):
    type: Literal["user.updated"]
    data: IdentityUserData


class UserDeletedEvent(BaseModel):
    type: Literal["user.deleted"]
    data: DeletedUserData


IdentityEvent = Annotated[
    UserCreatedEvent | UserUpdatedEvent | UserDeletedEvent,
    Field(discriminator="type"),
]

IDENTITY_EVENT_TYPES = frozenset({"user.created", "user.updated", "user.deleted"})

_identity_adapter: TypeAdapter[IdentityEvent] = TypeAdapter(IdentityEvent)


# ---------------------------------------------------------------------------
# Payment provider
# ---------------------------------------------------------------------------


class PaymentMetadata(BaseModel):
    """Set by us when the checkout session is created."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    product_id: str = Field(alias="productId", min_length=1)


class PaymentData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    payment_id: str = Field(min_length=1)
    payload_type: str
    subscription_id: str | None = None
    total_amount: int = Field(ge=0)
    currency: str | None = None
    metadata: PaymentMetadata

    @property
    def is_one_time_payment(self) -> bool:
        return self.payload_type == "Payment" and not self.subscription_id


class PaymentSucceededEvent(BaseModel):
    type: Literal["payment.succeeded"]
    data: PaymentData


PaymentEvent = PaymentSucceededEvent

PAYMENT_EVENT_TYPES = frozenset({"payment.succeeded"})

_payment_adapter: TypeAdapter[PaymentEvent] = TypeAdapter(PaymentEvent)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _load_envelope(raw: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Webhook body is not valid JSON.")
    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise ValidationError("Webhook body has no event type.")
    return payload


def _validate(adapter: TypeAdapter, payload: dict[str, Any]) -> Any:
    try:
        return adapter.validate_python(payload)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ValidationError(f"Invalid {payload['type']} payload: {fields}") from exc


def parse_identity_event(raw: bytes) -> IdentityEvent | None:
    payload = _load_envelope(raw)
    if payload["type"] not in IDENTITY_EVENT_TYPES:
        return None
    return _validate(_identity_adapter, payload)


def parse_identity_user(payload: Any) -> IdentityUserData:
    """Validate a user object fetched from the identity provider API."""
    try:
        return IdentityUserData.model_validate(payload)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ValidationError(f"Invalid identity user: {fields}") from exc


def parse_payment_event(raw: bytes) -> PaymentEvent | None:
    payload = _load_envelope(raw)
    if payload["type"] not in PAYMENT_EVENT_TYPES:
        return None
    return _validate(_payment_adapter, payload)
