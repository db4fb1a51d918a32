"""
Materials Engine - Main FastAPI Application
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from materials_engine.api.v1 import router as api_v1_router
from materials_engine.core.settings import settings
from materials_engine.exceptions import ErrorKind, MaterialsEngineException
from materials_engine.logging_config import setup_logging, get_logger

# Setup structured logging
setup_logging()
logger = get_logger(__name__)


# ===================
# Security Headers Middleware
# ===================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # HSTS in production
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


def init_database():
    """Create missing tables on startup (idempotent). Alembic owns real schema changes."""
    try:
        from materials_engine.db.session import engine
        from materials_engine.db.base import Base
        import materials_engine.models  # noqa: F401
        logger.info("Checking database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        "Starting Materials Engine API",
        extra={
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "debug": settings.DEBUG,
        }
    )
    init_database()
    yield
    logger.info("Shutting down Materials Engine API")


# Create FastAPI app
app = FastAPI(
    title="Materials Engine API",
    description="Material requirements, reservation and consumption for manufacturing work orders",
    version=settings.VERSION,
    lifespan=lifespan,
)

# Security headers middleware (outermost)
app.add_middleware(SecurityHeadersMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin", "X-Requested-With", "X-Actor"],
)


# ===================
# Exception Handlers
# ===================

def _error_response(status_code: int, body: dict, headers: Optional[dict] = None) -> JSONResponse:
    body["timestamp"] = datetime.utcnow().isoformat() + "Z"
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.exception_handler(MaterialsEngineException)
async def materials_engine_exception_handler(request: Request, exc: MaterialsEngineException):
    # Configuration errors need an operator
    level = logging.ERROR if exc.error_kind == ErrorKind.CONFIGURATION else logging.WARNING
    logger.log(
        level,
        f"{request.method} {request.url.path} -> {exc.error_code}: {exc.message}",
        extra={"error_code": exc.error_code, "error_kind": exc.error_kind.value, "details": exc.details},
    )
    headers = None
    if exc.retryable and "retry_after_seconds" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after_seconds"])}
    return _error_response(exc.status_code, exc.to_dict(), headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    logger.warning(f"Rejected request body on {request.url.path}", extra={"errors": errors})
    return _error_response(422, {
        "error": "VALIDATION_ERROR",
        "message": "Request validation failed",
        "kind": ErrorKind.VALIDATION.value,
        "retryable": False,
        "details": {"errors": errors},
    })


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database failure on {request.url.path}", exc_info=True)
    return _error_response(500, {
        "error": "DATABASE_ERROR",
        "message": "The database could not complete the request",
        "kind": ErrorKind.TRANSIENT.value,
        "retryable": True,
    })


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled {type(exc).__name__} on {request.url.path}", exc_info=True)
    return _error_response(500, {
        "error": "INTERNAL_ERROR",
        "message": "Unexpected server error",
        "retryable": False,
    })


# Include API routes
app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("materials_engine.main:app", host="0.0.0.0", port=8001, reload=True)
