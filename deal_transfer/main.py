"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from deal_transfer.api.v1 import router as api_v1_router
from deal_transfer.api.v1.schemas import HealthResponse
from deal_transfer.config import get_settings
from deal_transfer.core.logging import configure_logging, get_logger
from deal_transfer.infrastructure.scheduler import (
    schedule_poll_job,
    start_scheduler,
    stop_scheduler,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()

    # Startup
    configure_logging()
    logger.info("Starting application", version=settings.app_version)

    polling = schedule_poll_job(settings)
    if polling:
        start_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down application")
    if polling:
        stop_scheduler()


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Raises:
        ConfigurationError: BITRIX_WEBHOOK_URL is not set
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.include_router(api_v1_router)

    @app.get("/healthcheck", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "deal_transfer.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
