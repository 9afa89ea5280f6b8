"""FastAPI application for the Application Tracker"""

import sys
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import time

from apptracker.errors import (
    TrackerError,
    RecordValidationError,
    StoreOperationError,
    ReauthRequiredError,
    AuthenticationError,
)
from .config import get_settings
from .dependencies import get_store
from .models.responses import HealthResponse
from .routers import auth_router, applications_router, analytics_router, live_router

# Get settings
settings = get_settings()

# Configure logging based on environment
log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)

# HTTP status for each store error code
STORE_ERROR_STATUS = {
    StoreOperationError.NOT_FOUND: 404,
    StoreOperationError.INVALID_ARGUMENT: 400,
    StoreOperationError.PERMISSION_DENIED: 403,
    StoreOperationError.UNAVAILABLE: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown"""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")

    store = get_store()
    logger.info(f"Record store at {store.db_path} holds {store.count()} applications")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name} API")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Application Tracker API

    Track job applications and watch how they move through the hiring funnel.

    ## Features
    - **Auth**: email/password or guest sessions, account deletion
    - **Applications**: create, inline field edits, delete
    - **Insights**: cumulative stage funnel over a date range
    - **Live**: WebSocket stream re-sending the dashboard after every change
    """,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

# Add GZip compression for responses > 1KB
app.add_middleware(GZipMiddleware, minimum_size=1000)


# Request timing and logging middleware
@app.middleware("http")
async def request_middleware(request: Request, call_next):
    start_time = time.time()
    request_id = f"{int(start_time * 1000)}"

    if settings.debug:
        logger.debug(f"[{request_id}] {request.method} {request.url.path}")

    try:
        response = await call_next(request)
        process_time = time.time() - start_time

        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        response.headers["X-Request-ID"] = request_id

        if process_time > settings.slow_request_seconds:
            logger.warning(
                f"[{request_id}] Slow request: {request.method} {request.url.path} "
                f"took {process_time:.2f}s"
            )

        return response

    except Exception as e:
        logger.error(f"[{request_id}] Request failed: {e}", exc_info=True)
        raise


def _error_response(status_code: int, error: str, exc: TrackerError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": str(exc),
            "error_code": exc.error_code,
        },
    )


@app.exception_handler(RecordValidationError)
async def validation_error_handler(request: Request, exc: RecordValidationError):
    return _error_response(400, "Invalid request", exc)


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return _error_response(401, "Not authenticated", exc)


@app.exception_handler(ReauthRequiredError)
async def reauth_error_handler(request: Request, exc: ReauthRequiredError):
    return _error_response(401, "Recent login required", exc)


@app.exception_handler(StoreOperationError)
async def store_error_handler(request: Request, exc: StoreOperationError):
    status_code = STORE_ERROR_STATUS.get(exc.code, 503)
    if status_code >= 500:
        logger.error(f"Store operation failed on {request.url.path}: {exc}")
    return _error_response(status_code, "Store operation failed", exc)


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    logger.error(f"Unhandled tracker error: {exc}")
    return _error_response(500, "Internal server error", exc)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    detail = str(exc) if settings.debug else "An unexpected error occurred"

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": detail,
            "path": str(request.url.path),
        },
    )


# Include routers
app.include_router(auth_router)
app.include_router(applications_router)
app.include_router(analytics_router)
app.include_router(live_router)


# Health check endpoint (always available, even in production)
@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check():
    """Health check endpoint for load balancers and monitoring"""
    try:
        get_store().count()
        store_status = "healthy"
    except StoreOperationError:
        store_status = "unavailable"

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "store_status": store_status,
    }


# Root endpoint
@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API info"""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
    }


# Run with: python -m apptracker.ui.api.main
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "apptracker.ui.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
        log_level=settings.log_level,
        access_log=settings.debug,
    )
