from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from meridian.context import get_correlation_id


_DEFAULT_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_409_CONFLICT: "CONFLICT",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "VALIDATION_ERROR",
}


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    payload = ErrorEnvelope(code=code, message=message, details=details, correlation_id=correlation_id or None)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(asdict(payload)), headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render ``HTTPException`` as an error envelope.

    A dict ``detail`` carries its own ``code`` and ``message``; the remaining
    keys become ``details``. A string ``detail`` becomes the message.
    """
    default_code = _DEFAULT_CODES.get(exc.status_code, "HTTP_ERROR")
    if isinstance(exc.detail, dict):
        detail = dict(exc.detail)
        code = str(detail.pop("code", default_code))
        message = str(detail.pop("message", code))
        details: Any = detail or None
    else:
        code = default_code
        message = str(exc.detail)
        details = None
    return error_response(
        request,
        status_code=exc.status_code,
        code=code,
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=exc.errors(),
    )
