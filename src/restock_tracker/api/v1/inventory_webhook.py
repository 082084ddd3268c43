"""Inventory webhook: turns a restock notification into Klaviyo alert events.

Called by Shopify Flow when a product's inventory goes from 0 to 1+. The
payload format varies between flows, so several spellings of each field are
accepted.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from restock_tracker.api.dependencies import get_alert_dispatcher
from restock_tracker.services import AlertDispatcher
from restock_tracker.services.alert_dispatch import RestockedProduct

logger = structlog.get_logger()

router = APIRouter()


class InventoryWebhookPayload(BaseModel):
    """Inventory change notification as sent by Shopify Flow."""

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    product_id: str | None = Field(
        None, validation_alias=AliasChoices("product_id", "productId", "id")
    )
    product_title: str | None = Field(
        None, validation_alias=AliasChoices("product_title", "productTitle", "title")
    )
    product_handle: str | None = Field(
        None, validation_alias=AliasChoices("product_handle", "productHandle", "handle")
    )
    inventory_quantity: int | None = Field(
        None,
        validation_alias=AliasChoices("inventory_quantity", "inventoryQuantity", "quantity"),
    )
    product_url: str | None = Field(None, validation_alias=AliasChoices("product_url", "productUrl"))
    product_image: str | None = Field(
        None, validation_alias=AliasChoices("product_image", "productImage", "image")
    )
    variant_id: str | None = Field(None, validation_alias=AliasChoices("variant_id", "variantId"))

    def to_product(self) -> RestockedProduct:
        return RestockedProduct(
            id=self.product_id or None,
            title=self.product_title or "",
            handle=self.product_handle or "",
            url=self.product_url or "",
            image=self.product_image or "",
            inventory=self.inventory_quantity,
            variant_id=self.variant_id or None,
        )


@router.post("")
async def receive_inventory_update(
    payload: InventoryWebhookPayload,
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
) -> JSONResponse:
    """
    Send "Back In Stock Alert" events for everyone who signed up for a product.

    If only a variant id is supplied the product is looked up in Shopify.
    No alerts are sent when the reported inventory is zero or negative.
    """
    logger.info("Webhook received", payload=payload.model_dump(exclude_none=True))
    try:
        product = await dispatcher.complete_product(payload.to_product())
        if not product.id:
            return JSONResponse(
                status_code=400, content={"error": "Missing product_id or variant_id"}
            )
        result = await dispatcher.dispatch(product)
    except Exception as e:
        logger.exception("Webhook error", error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})

    return JSONResponse(content=result.to_dict())


@router.get("")
async def webhook_status() -> dict[str, Any]:
    """Readiness probe for the webhook, with an example payload."""
    return {
        "status": "ok",
        "message": "Inventory webhook ready. POST product data to trigger alerts.",
        "example": {
            "product_id": "123456789",
            "product_title": "Product Name",
            "product_handle": "product-name",
            "inventory_quantity": 10,
        },
    }
