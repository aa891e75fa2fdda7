"""Domain exception classes for the storefront service.

Raised by service-layer code and caught by controllers, which map them
to HTTP responses. Nothing in here imports FastAPI.
"""


class AppError(Exception):
    """Base class for every error the service raises on purpose."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class AuthenticationError(AppError):
    """Webhook signature, timestamp or verification headers are missing or invalid."""


class ValidationError(AppError):
    """Request or event payload is malformed or incomplete."""


class NotFoundError(AppError):
    def __init__(self, entity: str, identifier: object = ""):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class ConflictError(AppError):
    """A unique constraint rejected a concurrent write; retry the read-then-write."""


class TransactionAbortError(AppError):
    """A database error aborted the transaction; nothing was written."""


class PermissionDeniedError(AppError):
    """The current user may not perform this action."""


class IdentityProviderError(AppError):
    """The identity provider rejected or failed an outbound API call."""

    def __init__(self, message: str = "", status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
