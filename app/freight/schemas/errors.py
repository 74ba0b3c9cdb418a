from typing import Any

from pydantic import BaseModel


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: dict | list | None = None
    trace_id: str | None = None


class FieldError(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None
    input: Any = None
    ctx: dict | None = None


class FieldErrorList(BaseModel):
    errors: list[FieldError]


class ValidationErrorEnvelope(ErrorEnvelope):
    details: FieldErrorList | None = None


# Documented on every /api route; the handlers in core.errors render these shapes.
API_ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope, "description": "Invalid request"},
    401: {"model": ErrorEnvelope, "description": "Missing or invalid credentials"},
    403: {"model": ErrorEnvelope, "description": "Permission or tenant scope denied"},
    404: {"model": ErrorEnvelope, "description": "Resource not found"},
    409: {"model": ErrorEnvelope, "description": "Conflict"},
    422: {"model": ValidationErrorEnvelope, "description": "Validation error"},
    500: {"model": ErrorEnvelope, "description": "Internal error"},
}
