from fastapi import APIRouter, Depends, Request

from app.freight.core.deps import require_active_user
from app.freight.core.error_catalog import AppError
from app.freight.db.session import get_db
from app.freight.repos.users import UserRepository
from app.freight.routers.common import trace_id_of
from app.freight.schemas.auth import LoginRequest, TokenResponse, UserResponse
from app.freight.services.audit import AuditEventPayload, AuditService
from app.freight.services.auth import AuthService

router = APIRouter()


@router.post(
    "/auth/login",
    response_model=TokenResponse,
    summary="Login (JSON)",
    description="Exchange an email or username plus password for a bearer token.",
)
def login(request: Request, payload: LoginRequest, db=Depends(get_db)):
    identifier = payload.email or payload.username_or_email
    trace_id = trace_id_of(request)
    audit = AuditService(db)

    try:
        user, token = AuthService(db).login(identifier, payload.password)
    except AppError as exc:
        candidates = UserRepository(db).list_by_username_or_email(identifier)
        if candidates:
            candidate = candidates[0]
            audit.record_event(
                AuditEventPayload(
                    tenant_id=str(candidate.tenant_id),
                    user_id=str(candidate.id),
                    trace_id=trace_id or None,
                    actor=identifier,
                    action="auth.login.failed",
                    entity_type="user",
                    entity_id=str(candidate.id),
                    metadata={"error_code": exc.error.code},
                    result="failure",
                )
            )
        raise

    audit.record_event(
        AuditEventPayload(
            tenant_id=str(user.tenant_id),
            user_id=str(user.id),
            trace_id=trace_id or None,
            actor=user.username,
            action="auth.login",
            entity_type="user",
            entity_id=str(user.id),
        )
    )
    return TokenResponse(access_token=token, trace_id=trace_id)


@router.get("/me", response_model=UserResponse)
def me(current_user=Depends(require_active_user)):
    return UserResponse.model_validate(current_user)
