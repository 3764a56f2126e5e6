from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
import logging
import time

from farmkonnect.api.core.database import engine
from farmkonnect.api.core.cache import redis_client
from farmkonnect.api.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting FarmKonnect API...")

    # Tables are created by init_database.py
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")

    if settings.CACHE_ENABLED:
        try:
            await redis_client.ping()
            logger.info("Redis connected")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")

    yield

    logger.info("Shutting down FarmKonnect API...")
    try:
        await redis_client.aclose()
    except Exception as e:
        logger.warning(f"Error closing Redis client: {e}")
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Farm management API: farms, crops, livestock, finances, veterinary care, marketplace and notifications",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s")
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint for monitoring"""
    db_status = "connected"
    cache_status = "connected" if settings.CACHE_ENABLED else "disabled"

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        db_status = "disconnected"

    if settings.CACHE_ENABLED:
        try:
            await redis_client.ping()
        except Exception:
            cache_status = "disconnected"

    healthy = db_status == "connected" and cache_status != "disconnected"
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.APP_VERSION,
        "database": db_status,
        "cache": cache_status
    }


API_V1_PREFIX = settings.API_V1_STR

from farmkonnect.api.routers import (  # noqa: E402
    auth,
    user_approval,
    audit_logs,
    farms,
    crops,
    livestock,
    financial,
    analytics,
    marketplace,
    veterinary,
    notifications,
)

ROUTERS = [
    (auth.router, "auth", "Authentication"),
    (user_approval.router, "user-approval", "User Approval"),
    (audit_logs.router, "audit-logs", "Audit Logs"),
    (farms.router, "farms", "Farms"),
    (crops.router, "crops", "Crops"),
    (livestock.router, "livestock", "Livestock"),
    (financial.router, "finance", "Financial Management"),
    (analytics.router, "analytics", "Predictive Analytics"),
    (marketplace.router, "marketplace", "Marketplace"),
    (veterinary.router, "veterinary", "Veterinary"),
    (notifications.router, "notifications", "Push Notifications"),
]

for router, prefix, tag in ROUTERS:
    app.include_router(router, prefix=f"{API_V1_PREFIX}/{prefix}", tags=[tag])


@app.get("/", tags=["Root"])
async def root():
    """API root endpoint"""
    return {
        "message": "Welcome to FarmKonnect API",
        "docs": "/api/docs",
        "version": settings.APP_VERSION,
        "endpoints": {
            "health": "/health",
            **{prefix: f"{API_V1_PREFIX}/{prefix}" for _, prefix, _ in ROUTERS}
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "farmkonnect.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
