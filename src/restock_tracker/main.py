"""FastAPI application entry point."""

import structlog
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from restock_tracker import __version__
from restock_tracker.api.v1.router import api_router
from restock_tracker.config import get_settings
from restock_tracker.log_config import configure_logging
from restock_tracker.middleware.request_context import RequestContextMiddleware

configure_logging(get_settings())

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting Restock Tracker",
        app_env=settings.app_env,
        debug=settings.debug,
        klaviyo_configured=settings.klaviyo_configured,
        shopify_configured=settings.shopify_configured,
    )
    if not settings.klaviyo_configured:
        logger.warning("KLAVIYO_PRIVATE_API_KEY not set, subscriber requests will fail")

    yield

    logger.info("Shutting down Restock Tracker")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Restock Tracker API",
        description="Back-in-stock signup tracking: alert delivery and post-restock orders per signup",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "restock_tracker.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
