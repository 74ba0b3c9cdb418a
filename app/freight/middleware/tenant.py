from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.freight.core.context import build_request_context
from app.freight.core.security import decode_token


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Expose the caller's tenant, user and role on `request.state`.

    The token is only peeked at here for logging and context; routes still
    authenticate through their own dependencies, so a bad token leaves the
    request anonymous instead of failing it.
    """

    async def dispatch(self, request: Request, call_next):
        request.state.tenant_id = None
        request.state.user_id = None
        request.state.username = None
        request.state.role = None

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.lower().startswith("bearer "):
            token = auth_header.split(" ", 1)[1]
            try:
                payload = decode_token(token)
            except JWTError:
                payload = {}
            request.state.tenant_id = payload.get("tenant_id")
            request.state.user_id = payload.get("sub")
            request.state.username = payload.get("username")
            request.state.role = payload.get("role")

        request.state.context = build_request_context(
            user_id=request.state.user_id,
            tenant_id=request.state.tenant_id,
            username=request.state.username,
            role=request.state.role,
            trace_id=getattr(request.state, "trace_id", ""),
        )

        return await call_next(request)
