"""Back in stock notification tasks."""

import asyncio

import httpx
import structlog
from celery import shared_task

from restock_tracker.api.dependencies import build_alert_dispatcher
from restock_tracker.config import get_settings
from restock_tracker.exceptions import UpstreamUnavailable
from restock_tracker.services.alert_dispatch import RestockedProduct

logger = structlog.get_logger()


async def dispatch_restock(product: RestockedProduct) -> dict:
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http:
        dispatcher = build_alert_dispatcher(http, settings)
        product = await dispatcher.complete_product(product)
        if not product.id:
            return {"success": False, "message": "Missing product_id or variant_id", "alertsSent": 0}
        result = await dispatcher.dispatch(product)
    return result.to_dict()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def notify_back_in_stock(
    self,
    product_id: str | None,
    variant_id: str | None = None,
    inventory: int | None = None,
) -> dict:
    """
    Notify subscribers when a product is back in stock.

    Queued instead of calling the inventory webhook when the caller should
    not wait for Klaviyo. Each subscriber receives a "Back In Stock Alert"
    event, which triggers the Klaviyo email flow.

    Args:
        product_id: The product that's back in stock
        variant_id: Variant that changed; used to find the product if
            product_id is missing
        inventory: Reported stock level, if known

    Returns:
        dict: Summary of alerts sent
    """
    logger.info(
        "Processing back in stock notification",
        product_id=product_id,
        variant_id=variant_id,
        task_id=self.request.id,
    )
    product = RestockedProduct(id=product_id, inventory=inventory, variant_id=variant_id)
    try:
        return asyncio.run(dispatch_restock(product))
    except UpstreamUnavailable as e:
        logger.warning("Upstream unavailable, retrying", error=str(e), retries=self.request.retries)
        raise self.retry(exc=e)
