# tenant_lifecycle/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import OffboardingError
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.offboarding import router as offboarding_router
from .routers.deposits import router as deposits_router
from .routers.turnover import router as turnover_router
from .routers.tenant_history import router as tenant_history_router

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def _offboarding_error_handler(request: Request, exc: OffboardingError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request failed: %s", exc.message, extra={"event": "offboarding_error", "path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.code})


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Tenant Lifecycle Backend", version=settings.app_version)

    # Added first = innermost: logging runs inside RequestID so it sees request.state.request_id
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(OffboardingError, _offboarding_error_handler)

    app.include_router(health_router, prefix=API_PREFIX)

    # Offboarding + follow-up workflows
    app.include_router(offboarding_router, prefix=API_PREFIX)
    app.include_router(deposits_router, prefix=API_PREFIX)
    app.include_router(turnover_router, prefix=API_PREFIX)
    app.include_router(tenant_history_router, prefix=API_PREFIX)

    return app


app = create_app()
