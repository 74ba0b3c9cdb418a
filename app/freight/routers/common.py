from uuid import UUID

from fastapi import Request

from app.freight.core.error_catalog import AppError, ErrorCatalog
from app.freight.services.idempotency import IdempotencyService, extract_idempotency_key


def trace_id_of(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


def parse_uuid(value: str, field: str) -> UUID:
    """Path identifiers are validated before any query runs."""
    try:
        return UUID(value)
    except (TypeError, ValueError) as exc:
        raise AppError(ErrorCatalog.INVALID_IDENTIFIER, details={"field": field, "value": value}) from exc


def begin_idempotent(request: Request, db, *, tenant_id: str, payload: dict, required: bool = False):
    """Open an idempotency record for the request when the client sent a key.

    Returns ``(context, replay)``; both are None when no key was supplied.
    """
    idempotency_key = extract_idempotency_key(request.headers, required=required)
    if not idempotency_key:
        return None, None
    context, replay = IdempotencyService(db).start(
        tenant_id=str(tenant_id),
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if context is not None:
        request.state.idempotency = context
    return context, replay
