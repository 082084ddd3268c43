"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from restock_tracker import __version__
from restock_tracker.config import Settings, get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


def _configured(flag: bool) -> str:
    return "configured" if flag else "missing"


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status, version and which upstream credentials are
    present. No upstream calls are made.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "klaviyo": _configured(settings.klaviyo_configured),
            "shopify": _configured(settings.shopify_configured),
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(settings: Settings = Depends(get_settings)) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Klaviyo credentials are required to serve the subscriber list; Shopify is
    reported but optional, since enrichment degrades without it.
    """
    checks = {
        "klaviyo": settings.klaviyo_configured,
        "shopify": settings.shopify_configured,
    }
    return ReadinessResponse(ready=checks["klaviyo"], checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.

    Simple endpoint that returns 200 if the service is running.
    """
    return {"status": "alive"}
