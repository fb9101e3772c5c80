"""
Storefront order service - main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from storefront.logging_config import setup_logging
from storefront.tracing import Tracing
from storefront.api import routes
from storefront.db import database
from storefront.services.errors import OrderServiceError
from storefront.services.notifier import EmailNotifier
from storefront.config import settings

setup_logging(settings)

logger = logging.getLogger(__name__)

tracing = Tracing(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info(f"Starting {settings.service_name}")
    logger.info(f"Environment: {settings.environment}")

    try:
        engine = database.init_database(
            settings.database_url,
            isolation_level=settings.isolation_level,
            lock_timeout_ms=settings.lock_timeout_ms
        )
        database.create_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    notifier = EmailNotifier(
        api_key=settings.sendgrid_api_key,
        api_url=settings.sendgrid_api_url,
        sender=settings.mail_from,
        timeout=settings.notification_timeout
    )
    routes.notifier = notifier

    tracing.start(engine)

    logger.info(f"{settings.service_name} started successfully")

    yield

    logger.info(f"Shutting down {settings.service_name}")
    await notifier.close()
    tracing.shutdown()


app = FastAPI(
    title="Storefront Order Service",
    description="Checkout and order history for the storefront",
    version=settings.service_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

tracing.instrument_app(app)

app.include_router(routes.router)


@app.get("/health")
async def health_check():
    """Health check endpoint (liveness probe)"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "notifications": "enabled" if routes.notifier and routes.notifier.is_enabled() else "disabled"
    }


@app.get("/ready")
def readiness_check():
    """Readiness check endpoint (readiness probe)"""
    try:
        db = database.SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()

        return {
            "status": "ready",
            "service": settings.service_name,
            "database": "connected",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "service": settings.service_name,
                "database": "disconnected",
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready"
    }


@app.exception_handler(OrderServiceError)
async def order_error_handler(request: Request, exc: OrderServiceError):
    """Business and storage errors raised by the order services"""
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message},
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are answered with 400 and the first problem found"""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", message)

    logger.info(f"Rejected request to {request.url.path}: {message}")
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={"message": "Internal Server Error"}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.main:app",
        host="0.0.0.0",
        port=8002,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
