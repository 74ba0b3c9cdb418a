import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.freight.core.error_catalog import ErrorCatalog
from app.freight.db.session import get_db
from app.freight.routers.common import trace_id_of

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "trace_id": trace_id_of(request)}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    trace_id = trace_id_of(request)
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("readiness probe failed: %s", exc, extra={"trace_id": trace_id})
        error = ErrorCatalog.DB_UNAVAILABLE
        return JSONResponse(
            status_code=error.status_code,
            content={"code": error.code, "message": error.message, "details": str(exc), "trace_id": trace_id},
        )
    return {"status": "ready", "trace_id": trace_id}
