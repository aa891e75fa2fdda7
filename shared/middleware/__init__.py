from shared.middleware.request_id import RequestIdFilter, request_id_ctx, request_id_middleware
from shared.middleware.error_handler import error_envelope_middleware

__all__ = [
    "RequestIdFilter",
    "error_envelope_middleware",
    "request_id_ctx",
    "request_id_middleware",
]
