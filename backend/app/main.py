"""
Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.api import router as api_router
from app.core.config import get_settings
from app.core.database import get_db
from app.core.logging import get_logger, setup_logging
from app.core.middleware import RequestLoggingMiddleware
from app.services.similarity_refresher import SimilarityRefreshTask

settings = get_settings()

# Set up logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(
        f"Starting {settings.APP_NAME}",
        extra={
            "extra_fields": {
                "environment": settings.ENVIRONMENT,
                "debug": settings.DEBUG,
                "similarity_refresh_inline": settings.SIMILARITY_REFRESH_INLINE,
            }
        },
    )

    # Auto-create database tables on startup
    if settings.DATABASE_AUTO_CREATE:
        try:
            import app.models  # noqa: F401
            from app.core.database import Base, engine

            Base.metadata.create_all(bind=engine)
            logger.info("Database tables verified/created")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")

    # Initialize Sentry if configured
    if settings.SENTRY_DSN:
        try:
            import sentry_sdk
            from sentry_sdk.integrations.fastapi import FastApiIntegration
            from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

            sentry_sdk.init(
                dsn=settings.SENTRY_DSN,
                environment=settings.ENVIRONMENT,
                traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else 1.0,
                integrations=[
                    FastApiIntegration(transaction_style="endpoint"),
                    SqlalchemyIntegration(),
                ],
            )
            logger.info("Sentry initialized successfully")
        except ImportError:
            logger.warning("sentry-sdk not installed, error tracking disabled")

    # Periodic similarity sweep
    refresher = None
    if settings.SIMILARITY_REFRESH_ENABLED:
        refresher = SimilarityRefreshTask()
        refresher.start()
    app.state.similarity_refresher = refresher

    yield

    # Shutdown
    if refresher is not None:
        await refresher.stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    description="Collaborative filtering recommendations and interaction scoring for TMusic",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan,
)

# CORS middleware - must be added first (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and monitoring.

    Returns basic application health status.
    """
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "similarity_refresh_inline": settings.SIMILARITY_REFRESH_INLINE,
    }


@app.get("/health/ready")
async def readiness_check(request: Request, db: Session = Depends(get_db)):
    """
    Readiness check endpoint.

    Verifies the database is reachable and reports whether the periodic
    similarity sweep is running.
    """
    checks = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = "disconnected"

    refresher = getattr(request.app.state, "similarity_refresher", None)
    if refresher is None:
        checks["similarity_refresh"] = "disabled"
    else:
        checks["similarity_refresh"] = "running" if refresher.is_running else "stopped"

    status = "ready" if checks["database"] == "connected" else "not_ready"

    return {
        "status": status,
        "checks": checks,
    }


# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)
