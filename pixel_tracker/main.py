"""
FastAPI application entry point
"""
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging
import time

from pixel_tracker.core.cache import TTLCache
from pixel_tracker.core.config import settings
from pixel_tracker.core.database import engine, Base
from pixel_tracker.core.dependencies import get_cache, get_database, get_forwarder
from pixel_tracker.core.errors import TrackingError
from pixel_tracker.core.health import get_health_status
from pixel_tracker.core.logging_config import setup_logging
from pixel_tracker.core.rate_limit import limiter
from pixel_tracker.core.resilience import ResilientDatabase
from pixel_tracker.services.forwarding import BackgroundForwarder

# Register all models on Base.metadata
from pixel_tracker import models  # noqa: F401

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Storefront pixel ingestion with server-side Conversions API forwarding",
    version="0.1.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - the pixel fires from arbitrary storefront origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    """Verify the database and create tables on startup"""
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    db_status = await get_database().ping()
    if db_status["status"] != "healthy":
        logger.warning(f"Database not reachable on startup: {db_status['message']}")
        return

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database tables created/verified")
    except Exception as e:
        logger.error(f"❌ Error creating database tables: {e}")


@app.on_event("shutdown")
async def shutdown():
    """Let in-flight forwarding finish before exit"""
    logger.info(f"Shutting down {settings.APP_NAME}...")
    forwarder = get_forwarder()
    if forwarder.pending:
        logger.info(f"Waiting for {forwarder.pending} forwarding tasks")
        await forwarder.wait_idle()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": "0.1.0",
        "status": "running"
    }


@app.get("/health")
async def health(
    db: ResilientDatabase = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
    forwarder: BackgroundForwarder = Depends(get_forwarder),
):
    """
    Health check endpoint.
    Returns status of all components.
    """
    return await get_health_status(db, cache, forwarder)


@app.get("/health/ready")
async def readiness(
    db: ResilientDatabase = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
    forwarder: BackgroundForwarder = Depends(get_forwarder),
):
    """
    Readiness probe for Kubernetes/Railway.
    Returns 200 if ready to accept traffic.
    """
    health_status = await get_health_status(db, cache, forwarder)

    if health_status["status"] == "healthy":
        return JSONResponse(
            content=health_status,
            status_code=status.HTTP_200_OK
        )
    return JSONResponse(
        content=health_status,
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE
    )


@app.get("/health/live")
async def liveness():
    """
    Liveness probe for Kubernetes/Railway.
    Returns 200 if application is alive.
    """
    return {"status": "alive"}


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests"""
    start_time = time.time()

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(
            f"{request.method} {request.url.path} - "
            f"Error: {str(e)} - "
            f"Time: {process_time:.3f}s",
            exc_info=True,
            extra={"path": request.url.path, "method": request.method},
        )
        raise

    process_time = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.3f}s",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "duration_ms": round(process_time * 1000, 2),
        },
    )
    return response


@app.exception_handler(TrackingError)
async def tracking_error_handler(request: Request, exc: TrackingError):
    """Render domain errors as structured JSON"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}", exc_info=exc.__cause__ is not None)
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.to_dict()}")

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=exc.headers,
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions"""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# Include routers
from pixel_tracker.api.v1 import track

app.include_router(track.router, tags=["tracking"])

# Admin router
from pixel_tracker.api.v1 import admin
app.include_router(admin.router, prefix="/api/v1/admin", tags=["admin"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("pixel_tracker.main:app", host="0.0.0.0", port=settings.PORT)
