"""
Daycare Messaging - Main FastAPI Application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.responses import JSONResponse

from daycare_messaging.core.config import settings
from daycare_messaging.core.logging import setup_logging, get_logger
from daycare_messaging.core.middleware import REQUEST_ID_HEADER, setup_middleware, setup_exception_handlers
from daycare_messaging.api.routes import router as api_router
from daycare_messaging.db.database import engine, Base
import daycare_messaging.db.models  # noqa: F401  registers tables on Base.metadata

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
    app_name=settings.APP_NAME
)

logger = get_logger(__name__)


def _parse_allowed_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


_OPENAPI_TAGS = [
    {"name": "Jobs", "description": "Retry sweeps and the email delivery health check."},
    {"name": "Messaging", "description": "Direct email sends and invitation resends."},
    {"name": "Contracts", "description": "E-signature status reconciliation."},
    {"name": "Webhooks", "description": "Asaas, ZapSign and GHL callbacks."},
    {"name": "Health", "description": "Liveness and readiness probes."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Message delivery, retry and webhook reconciliation for the daycare platform.",
    openapi_tags=_OPENAPI_TAGS,
)

# Setup middleware (request ID, request logging)
setup_middleware(app)
setup_exception_handlers(app)

allowed_origins = _parse_allowed_origins(settings.ALLOWED_ORIGINS)
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Client-Info", "Apikey", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )

app.include_router(api_router)


@app.on_event("startup")
async def startup() -> None:
    """Initialize database tables on startup"""
    logger.info("Starting application", extra_data={"app_name": settings.APP_NAME})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


@app.on_event("shutdown")
async def shutdown() -> None:
    """Cleanup on shutdown"""
    logger.info("Shutting down application")
    await engine.dispose()
    logger.info("Database connections disposed")


@app.get("/health", summary="Liveness probe", tags=["Health"])
async def health_check() -> dict[str, str]:
    """The process is up and answering; dependencies are not checked."""
    return {"status": "healthy"}


@app.get("/health/ready", summary="Readiness probe", tags=["Health"])
async def readiness_check() -> JSONResponse:
    """Database reachability"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Readiness check failed", extra_data={"error": str(e)})
        return JSONResponse(content={"status": "degraded", "db": f"error: {e}"}, status_code=503)
    return JSONResponse(content={"status": "healthy", "db": "ok"})
