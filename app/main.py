from fastapi import FastAPI

from app.freight.api import api_router
from app.freight.core.config import settings
from app.freight.core.errors import setup_exception_handlers
from app.freight.core.logging import configure_logging
from app.freight.middleware.observability import ObservabilityMiddleware
from app.freight.middleware.tenant import TenantContextMiddleware
from app.freight.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
