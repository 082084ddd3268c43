"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from restock_tracker.api.v1 import (
    health,
    inventory_webhook,
    subscribers,
)

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    subscribers.router,
    prefix="/subscribers",
    tags=["Subscribers"],
)

api_router.include_router(
    inventory_webhook.router,
    prefix="/inventory-webhook",
    tags=["Inventory Webhook"],
)
