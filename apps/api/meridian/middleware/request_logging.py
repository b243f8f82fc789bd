from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from meridian.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("meridian.request")


def _record_request(request: Request, started: float, status_code: int, *, failed: bool = False) -> None:
    elapsed = time.perf_counter() - started
    # scope["route"] is only set once the router has matched
    path = resolve_http_path_label(request)
    observe_http_request(method=request.method, path=path, status=status_code, duration=elapsed)

    context = getattr(request.state, "context", None)
    fields = {
        "method": request.method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(elapsed * 1000, 2),
        "org_id": getattr(context, "org_id", None),
    }
    if failed:
        logger.error("http.error", exc_info=True, extra=fields)
    elif status_code >= 500:
        logger.warning("http.request", extra=fields)
    else:
        logger.info("http.request", extra=fields)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _record_request(request, started, 500, failed=True)
            raise

        _record_request(request, started, response.status_code)
        return response
