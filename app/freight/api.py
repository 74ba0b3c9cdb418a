from fastapi import APIRouter

from app.freight.routers.audit import router as audit_router
from app.freight.routers.auth import router as auth_router
from app.freight.routers.clients import router as clients_router
from app.freight.routers.containers import router as containers_router
from app.freight.routers.folders import router as folders_router
from app.freight.routers.health import router as health_router
from app.freight.routers.stages import router as stages_router
from app.freight.schemas.errors import API_ERROR_RESPONSES

api_router = APIRouter()
api_router.include_router(health_router, tags=["ops"])

for router, tag in (
    (auth_router, "auth"),
    (folders_router, "folders"),
    (stages_router, "stages"),
    (containers_router, "containers"),
    (clients_router, "clients"),
    (audit_router, "audit"),
):
    api_router.include_router(router, prefix="/api", tags=[tag], responses=API_ERROR_RESPONSES)
