"""
Stakeholder Interview Coach - Main FastAPI Application

This is the entry point for the coaching API.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stakeholder_coach.core.config import get_settings
from stakeholder_coach.core.database import mongodb_client
from stakeholder_coach.api import health, sessions, stages
from stakeholder_coach.services.session_orchestrator import get_session_orchestrator
from stakeholder_coach.services.stage_registry import get_stage_registry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Stakeholder Interview Coach...")

    # Stage table is loaded once and shared for the process lifetime
    get_stage_registry()

    if settings.session_store == "mongodb":
        await mongodb_client.connect()
        logger.info("MongoDB connection established")

    yield

    # Shutdown
    logger.info("Shutting down Stakeholder Interview Coach...")
    await get_session_orchestrator().close()
    if mongodb_client.is_connected:
        await mongodb_client.disconnect()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Coaching service for practising stakeholder interviews",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(stages.router)
    app.include_router(sessions.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "stakeholder_coach.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
