"""OKR Tracker — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from okr_backend.checkins.router import router as checkins_router
from okr_backend.common.exceptions import register_exception_handlers
from okr_backend.common.log_config import configure_logging
from okr_backend.config import settings
from okr_backend.database import engine
from okr_backend.notifications.router import router as notifications_router
from okr_backend.okr.router import key_results_router, objectives_router
from okr_backend.org.router import router as teams_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    configure_logging()
    logger.info("OKR Tracker starting (%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="OKR Tracker",
        description="Objectives, key results, check-ins and OKR notifications",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no actor required)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(objectives_router, prefix="/api/v1/objectives", tags=["objectives"])
    app.include_router(key_results_router, prefix="/api/v1/key-results", tags=["key-results"])
    app.include_router(checkins_router, prefix="/api/v1/checkins", tags=["checkins"])
    app.include_router(teams_router, prefix="/api/v1/teams", tags=["teams"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])

    return app


app = create_app()
