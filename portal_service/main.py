"""
Trade Portal - FastAPI Application
Onboarding and role portals for customers, workers and businesses
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
import asyncio
import logging
import time
from contextlib import asynccontextmanager

from portal_shared.utils.logger import setup_logging, RequestLogger
from portal_service import __version__
from portal_service.config import settings
from portal_service.models.records import RecordValidationError
from portal_service.routes import auth, onboarding, portal, waitlist
from portal_service.utils.profile_store import StoreError
from portal_service.utils.redis_session import init_redis_client, get_redis_client, close_redis_client
from portal_service.utils.supabase_client import GatewayError, supabase_connection

setup_logging(
    config_path=settings.log_config_path,
    log_level=settings.log_level,
    log_format=settings.log_format,
    environment=settings.environment
)
logger = logging.getLogger(__name__)
request_logger = RequestLogger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    logger.info("Trade Portal starting up...")

    # Connect to Supabase in the background; shutdown cancels the retries
    cancel_event = asyncio.Event()
    connect_task = asyncio.create_task(supabase_connection.connect(
        attempts=settings.gateway_connect_attempts,
        interval=settings.gateway_connect_interval,
        cancel_event=cancel_event
    ))

    await init_redis_client()

    logger.info("Trade Portal startup complete")

    yield

    # Shutdown
    logger.info("Trade Portal shutting down...")

    cancel_event.set()
    await connect_task
    await close_redis_client()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Onboarding and role portals for customers, workers and businesses",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    request_logger.log_request(
        request.method,
        request.url.path,
        response.status_code,
        time.perf_counter() - started,
        user_agent=request.headers.get("user-agent")
    )
    return response


# Global exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Custom HTTP exception handler"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "message": exc.detail,
            "status_code": exc.status_code
        },
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    """Form validation errors keyed by field name"""
    field_errors = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        field = location[-1] if location else "form"
        message = error.get("msg", "Invalid value")
        field_errors.setdefault(field, message.removeprefix("Value error, "))

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": True,
            "message": "Please correct the highlighted fields",
            "status_code": status.HTTP_422_UNPROCESSABLE_ENTITY,
            "field_errors": field_errors
        }
    )


@app.exception_handler(StoreError)
async def store_exception_handler(request, exc):
    logger.error(f"Unhandled profile store error on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": True,
            "message": "Something went wrong. Please try again.",
            "status_code": status.HTTP_502_BAD_GATEWAY
        }
    )


@app.exception_handler(RecordValidationError)
async def record_exception_handler(request, exc):
    logger.error(f"Malformed stored record on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": True,
            "message": "Something went wrong. Please try again.",
            "status_code": status.HTTP_502_BAD_GATEWAY
        }
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": "trade-portal",
        "version": __version__
    }


@app.get("/health/redis")
async def redis_health_check():
    """Session store health check"""
    try:
        client = await get_redis_client()
        await client.ping()
        return {"status": "healthy", "redis": "connected"}
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Redis connection failed"
        )


@app.get("/health/supabase")
async def supabase_health_check():
    """Identity backend health check"""
    try:
        supabase_connection.require_service_client()
    except GatewayError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.message
        )
    return {"status": "healthy", "supabase": "connected"}


# Include routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(onboarding.router, tags=["Onboarding"])
app.include_router(portal.router, prefix="/portal", tags=["Portal"])
app.include_router(waitlist.router, prefix="/waitlist", tags=["Waitlist"])


@app.get("/config")
async def public_config():
    """Browser-safe configuration"""
    return settings.public_config()


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.app_name,
        "version": __version__,
        "description": "Onboarding and role portals",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "portal_service.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
