"""
FastAPI Main Application
Kalustovahti API Service
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
import structlog

from kalustovahti.core.config import settings
from kalustovahti.core.database import AsyncSessionLocal, check_database_health, close_database, init_database
from kalustovahti.core.logging import setup_logging
from kalustovahti.api.v1.router import api_router
from kalustovahti.api.v1.endpoints.ws import router as ws_router
from kalustovahti.middleware.logging import LoggingMiddleware
from kalustovahti.middleware.security import RateLimitMiddleware, SecurityHeadersMiddleware
from kalustovahti.services.bootstrap import bootstrap

# Setup structured logging
setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Kalustovahti API Service", version=settings.VERSION, environment=settings.ENVIRONMENT)

    await init_database()

    # System roles and the bootstrap admin (idempotent)
    async with AsyncSessionLocal() as session:
        await bootstrap(session)

    yield

    logger.info("Shutting down Kalustovahti API Service")
    await close_database()


app = FastAPI(
    title=settings.APP_NAME,
    description="Fleet management back office: authentication and page-level access control",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan
)

# CORS first so preflight requests never reach the security middlewares
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "X-Requested-With",
        "X-Request-ID",
        "Origin",
    ],
    expose_headers=["X-Request-ID"],
    max_age=600,
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(LoggingMiddleware)

if settings.ENVIRONMENT == "production":
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )

app.include_router(api_router, prefix="/api/v1")
app.include_router(ws_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint for Docker and load balancers"""
    if await check_database_health():
        return {
            "status": "healthy",
            "service": "kalustovahti-api",
            "version": settings.VERSION,
            "timestamp": time.time(),
            "database": "connected"
        }

    return JSONResponse(
        status_code=503,
        content={
            "status": "unhealthy",
            "service": "kalustovahti-api",
            "version": settings.VERSION,
            "timestamp": time.time(),
            "database": "unavailable"
        }
    )


@app.get("/")
async def root():
    return {
        "message": "Kalustovahti API Service",
        "version": settings.VERSION,
        "docs": "/docs" if settings.ENVIRONMENT == "development" else "disabled",
        "health": "/health"
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unexpected errors become a generic 500 body"""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred",
            "request_id": getattr(request.state, "request_id", None),
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "kalustovahti.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower()
    )
