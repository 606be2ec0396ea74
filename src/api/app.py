"""
FastAPI Application Factory.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:app --host 0.0.0.0 --port 8080 --workers 4

    # Or, with HOST / PORT / WORKERS from settings
    personalization-api
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.deps import close_clients
from config.settings import get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup configures logging; the personalization service and its clients
    are built lazily on first request. Shutdown closes network clients.
    """
    settings = get_settings()

    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    logger.info(
        "Starting personalization API",
        environment=settings.environment,
        port=settings.port,
        orion_enabled=settings.orion_enabled,
        redis_enabled=settings.redis_enabled,
    )

    yield

    await close_clients()
    logger.info("Shutting down personalization API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Marketplace Personalization API",
        description="""
        Interaction-driven personalization for the marketplace.

        ## Main Endpoints

        - `POST /api/personalization/recommendations` - Personalized, re-ranked candidates
        - `GET /api/personalization/profile/{user_id}` - Derived preference profile
        - `POST /api/personalization/interactions` - Record an interaction

        ## Health Checks

        - `/health` - Basic health check
        - `/health/detailed` - Detailed health with dependency status
        - `/ready` - Kubernetes readiness probe
        - `/live` - Kubernetes liveness probe
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router, tags=["Health"])

    from api.routes.personalization import router as personalization_router
    app.include_router(personalization_router)

    return app


# Default app instance for uvicorn
# Usage: uvicorn api.app:app
app = create_app()


def run() -> None:
    """Serve the API with uvicorn using HOST, PORT and WORKERS from settings."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.app:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
    )


if __name__ == "__main__":
    run()
