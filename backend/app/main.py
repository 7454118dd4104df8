from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from app.core.config import settings
from app.core.errors import DomainError
from app.core.logging import setup_logging
import app.models  # noqa: F401  # force model registration

from app.api.v1.auth import router as auth_router
from app.api.v1.commission import router as commission_router
from app.api.v1.creators import router as creators_router
from app.api.v1.events import router as events_router
from app.api.v1.cmo import router as cmo_router
from app.api.v1.admin_creators import router as admin_creators_router
from app.api.v1.admin_payouts import router as admin_payouts_router


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    level = "WARNING" if exc.status_code >= 409 else "INFO"
    logger.log(
        level,
        "Request rejected",
        extra={"path": request.url.path, "method": request.method, "code": exc.code, "error": exc.message},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def create_application() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Creator Payouts API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DomainError, domain_error_handler)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "creator-payouts"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(commission_router, prefix="/api/v1")
    app.include_router(creators_router, prefix="/api/v1")
    app.include_router(events_router, prefix="/api/v1")
    app.include_router(cmo_router, prefix="/api/v1")
    app.include_router(admin_creators_router, prefix="/api/v1")
    app.include_router(admin_payouts_router, prefix="/api/v1")

    return app


app = create_application()
