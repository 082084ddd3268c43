"""FastAPI dependencies wiring the pipeline services for a request."""

from collections.abc import AsyncGenerator

import httpx
from fastapi import Depends

from restock_tracker.config import Settings, get_settings
from restock_tracker.infrastructure.klaviyo import KlaviyoClient
from restock_tracker.infrastructure.shopify import ShopifyClient
from restock_tracker.services import (
    AlertDispatcher,
    CorrelationEngine,
    EnrichmentService,
    EventSourceAdapter,
    ReconciliationService,
)


async def get_http_client(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """One HTTP client per request, closed when the response is done."""
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        yield client


def build_reconciliation_service(
    http: httpx.AsyncClient, settings: Settings
) -> ReconciliationService:
    event_source = EventSourceAdapter(KlaviyoClient(http, settings))
    return ReconciliationService(
        event_source=event_source,
        correlation=CorrelationEngine(event_source, settings),
        enrichment=EnrichmentService(ShopifyClient(http, settings)),
        settings=settings,
    )


def build_alert_dispatcher(http: httpx.AsyncClient, settings: Settings) -> AlertDispatcher:
    return AlertDispatcher(
        event_source=EventSourceAdapter(KlaviyoClient(http, settings)),
        shopify=ShopifyClient(http, settings),
        settings=settings,
    )


def get_reconciliation_service(
    http: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> ReconciliationService:
    return build_reconciliation_service(http, settings)


def get_alert_dispatcher(
    http: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> AlertDispatcher:
    return build_alert_dispatcher(http, settings)
