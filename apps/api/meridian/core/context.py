from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from meridian.context import reset_org_id, set_org_id


@dataclass
class RequestContext:
    request_id: str
    correlation_id: str
    user_id: str | None
    org_id: int | None


def _header_org_id(value: str | None) -> int | None:
    if value and value.strip().isdigit():
        return int(value.strip())
    return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = getattr(request.state, "correlation_id", None)
        request.state.context = RequestContext(
            request_id=correlation_id or "",
            correlation_id=correlation_id or "",
            user_id=None,
            org_id=_header_org_id(request.headers.get("x-org-id")),
        )
        token = set_org_id(request.state.context.org_id)
        try:
            response = await call_next(request)
        finally:
            reset_org_id(token)
        response.headers["x-request-id"] = request.state.context.request_id
        if request.state.context.org_id is not None:
            response.headers["x-org-id"] = str(request.state.context.org_id)
        return response
