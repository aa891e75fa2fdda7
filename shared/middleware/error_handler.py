import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.middleware.request_id import request_id_ctx

logger = logging.getLogger(__name__)


def error_envelope(status_code: int, code: str, message: str) -> JSONResponse:
    """``{"error": {code, message}, "request_id"}``, the body of every unhandled failure."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message},
            "request_id": request_id_ctx.get(),
        },
    )


async def error_envelope_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    try:
        return await call_next(request)
    except StarletteHTTPException as exc:
        if isinstance(exc.detail, str):
            return error_envelope(exc.status_code, exc.detail, exc.detail)
        return error_envelope(exc.status_code, "http_error", str(exc.detail))
    except Exception:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return error_envelope(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred",
        )
