"""
Marketing Segmentation API - Main Application

SECURITY FEATURES:
- Conditional API docs (disabled in production by default)
- Structured logging with request ids and without sensitive data
- RFC 7807 problem responses for every error
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from marketing_api.api.v2.router import api_router
from marketing_api.config import settings
from marketing_api.database import init_db
from marketing_api.exceptions import ConsoleException, create_exception_handlers
from marketing_api.middleware import CorrelationIdMiddleware, configure_logging
# Import all models to register them with SQLAlchemy metadata before init_db()
from marketing_api.models import Contact, Segment, SegmentMember  # noqa: F401
from marketing_api.services.segmentation import SegmentLockRegistry

configure_logging(settings.DEBUG)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Marketing Segmentation API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    # SECURITY: Don't log full database URL, just the driver
    logger.info(f"Database driver: {settings.DATABASE_URL.split('://', 1)[0]}")
    app.state.segment_locks = SegmentLockRegistry()
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        # SECURITY: Don't log full exception details which may contain credentials
        logger.error(f"Database initialization failed: {type(e).__name__}")
        logger.warning("App starting without database - segment endpoints will fail")
    yield
    # Shutdown
    logger.info("Shutting down Marketing Segmentation API...")


# SECURITY: Conditionally enable docs based on settings
docs_url = "/docs" if settings.DOCS_ENABLED else None
redoc_url = "/redoc" if settings.DOCS_ENABLED else None

app = FastAPI(
    title="Marketing Segmentation API",
    description="Rule-based contact segmentation and campaign audiences",
    version="1.0.0",
    docs_url=docs_url,
    redoc_url=redoc_url,
    lifespan=lifespan,
)

# CORS middleware
# SECURITY: Restrict origins to known frontend URLs
allowed_origins = [settings.FRONTEND_URL]

# Allow localhost origins for development/testing
if not settings.is_production:
    allowed_origins.extend([
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",  # Alternative dev port
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

# Problem detail responses
handlers = create_exception_handlers(allowed_origins, debug=settings.DEBUG)
app.add_exception_handler(ConsoleException, handlers["console"])
app.add_exception_handler(StarletteHTTPException, handlers["http"])
app.add_exception_handler(RequestValidationError, handlers["validation"])
app.add_exception_handler(Exception, handlers["generic"])

# Include routers
app.include_router(api_router, prefix="/api/v2")


@app.get("/")
async def root():
    """Root endpoint - API info."""
    response = {
        "name": "Marketing Segmentation API",
        "version": "1.0.0",
        "health": "/health",
    }
    # Only include docs link if enabled
    if settings.DOCS_ENABLED:
        response["docs"] = "/docs"
    return response


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
    }


# For running with uvicorn directly (development only)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "marketing_api.main:app",
        host="0.0.0.0",
        port=5001,
        reload=settings.DEBUG,
    )
