from decimal import Decimal

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.freight.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition


_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}

_LOCK_TOKENS = (
    "lock timeout",
    "deadlock detected",
    "database is locked",
    "could not obtain lock",
)
_NOT_FOUND_TOKENS = ("not found",)
_CONFLICT_TOKENS = ("already exists", "duplicate key", "unique constraint")
_VERSION_TOKENS = ("version",)


def _set_error_context(request: Request, code: str, exc: Exception | None = None) -> None:
    request.state.error_code = code
    if exc is not None:
        request.state.error_class = exc.__class__.__name__


def _driver_message(exc: Exception) -> str:
    # SQLAlchemy wraps the DBAPI error and appends the statement to str(exc).
    return str(getattr(exc, "orig", None) or exc).lower()


def _is_lock_timeout(exc: Exception) -> bool:
    if isinstance(exc, OperationalError):
        message = _driver_message(exc)
        return any(token in message for token in _LOCK_TOKENS)
    return False


def classify_database_error(exc: Exception) -> ErrorDefinition:
    """Map a persistence failure onto a catalog entry by inspecting its message.

    Lock waits win over everything else, then the substring families in the
    order not found, duplicate, version. Anything unrecognized is internal.
    """
    if _is_lock_timeout(exc):
        return ErrorCatalog.LOCK_TIMEOUT
    message = _driver_message(exc)
    if any(token in message for token in _NOT_FOUND_TOKENS):
        return ErrorCatalog.NOT_FOUND
    if any(token in message for token in _CONFLICT_TOKENS):
        return ErrorCatalog.CONFLICT
    if any(token in message for token in _VERSION_TOKENS):
        return ErrorCatalog.VERSION_CONFLICT
    return ErrorCatalog.INTERNAL_ERROR


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


def _record_idempotency_failure(request: Request, status_code: int, response_body: dict) -> None:
    context = getattr(request.state, "idempotency", None)
    if context is None:
        return
    context.record_failure(status_code=status_code, response_body=response_body)


def _http_error_code(status_code: int) -> str:
    return _HTTP_STATUS_CODES.get(status_code, "HTTP_ERROR")


def _json_safe(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, Exception):
        return str(value)
    return value


def _validation_error_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        field = ".".join(str(item) for item in loc if item not in {"body", "query", "path", "header"}) or None
        errors.append(
            {
                "field": field,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
                "input": _json_safe(error.get("input")),
                "ctx": _json_safe(error.get("ctx")),
            }
        )
    return {"errors": errors}


def _http_error_payload(request: Request, exc: HTTPException) -> dict:
    detail = exc.detail
    message = str(detail) if detail is not None else "HTTP error"
    details = None

    if isinstance(detail, dict):
        message = str(detail.get("message", message))
        details = {key: value for key, value in detail.items() if key != "message"} or None
    elif isinstance(detail, list):
        details = {"errors": detail}

    return {
        "code": _http_error_code(exc.status_code),
        "message": message,
        "details": details,
        "trace_id": _trace_id(request),
    }


def _error_payload(request: Request, error: ErrorDefinition, details: object) -> dict:
    return {
        "code": error.code,
        "message": error.message,
        "details": details,
        "trace_id": _trace_id(request),
    }


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        _set_error_context(request, exc.error.code, exc)
        payload = _error_payload(request, exc.error, exc.details)
        _record_idempotency_failure(request, exc.error.status_code, payload)
        return JSONResponse(status_code=exc.error.status_code, content=payload)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        payload = _http_error_payload(request, exc)
        _set_error_context(request, payload["code"], exc)
        _record_idempotency_failure(request, exc.status_code, payload)
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        error = ErrorCatalog.VALIDATION_ERROR
        _set_error_context(request, error.code, exc)
        payload = _error_payload(request, error, _validation_error_details(exc))
        _record_idempotency_failure(request, error.status_code, payload)
        return JSONResponse(status_code=error.status_code, content=payload)

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        error = classify_database_error(exc)
        _set_error_context(request, error.code, exc)
        payload = _error_payload(request, error, {"type": exc.__class__.__name__})
        _record_idempotency_failure(request, error.status_code, payload)
        return JSONResponse(status_code=error.status_code, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        error = ErrorCatalog.INTERNAL_ERROR
        _set_error_context(request, error.code, exc)
        payload = _error_payload(request, error, {"type": exc.__class__.__name__})
        _record_idempotency_failure(request, error.status_code, payload)
        return JSONResponse(status_code=error.status_code, content=payload)
