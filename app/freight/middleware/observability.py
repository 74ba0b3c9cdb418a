from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.freight.core.config import settings
from app.freight.core.logging import log_json
from app.freight.db.session import get_db_time_ms, start_db_timer, stop_db_timer

logger = logging.getLogger("freight.request")


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def build_request_log_payload(
    *,
    request: Request,
    response: Response | None,
    latency_ms: float,
    db_time_ms: float | None,
) -> dict:
    status_code = response.status_code if response is not None else 500
    replay = response.headers.get("X-Idempotency-Result") if response is not None else None
    return {
        "event": "http_request",
        "trace_id": getattr(request.state, "trace_id", ""),
        "tenant_id": getattr(request.state, "tenant_id", None),
        "user_id": getattr(request.state, "user_id", None),
        "route": _route_template(request),
        "method": request.method,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
        "db_time_ms": round(db_time_ms, 2) if db_time_ms is not None else None,
        "slow": latency_ms >= settings.SLOW_REQUEST_MS,
        "idempotency_result": replay,
        "error_code": getattr(request.state, "error_code", None),
        "error_class": getattr(request.state, "error_class", None),
    }


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Writes one JSON log line per request with timing and tenant context."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        timer = start_db_timer()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            db_time_ms = get_db_time_ms()
            stop_db_timer(timer)
            payload = build_request_log_payload(
                request=request,
                response=response,
                latency_ms=(time.perf_counter() - started) * 1000,
                db_time_ms=db_time_ms,
            )
            if payload["status_code"] >= 500 or payload["slow"]:
                log_json(logger, payload, level=logging.WARNING)
            else:
                log_json(logger, payload)
