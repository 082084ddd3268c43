"""Restock alert dispatch.

Turns an "inventory changed" notification into one "Back In Stock Alert" event
per signed-up subscriber. The Klaviyo flow listening on that metric sends the
actual email.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

import structlog

from restock_tracker.config import Settings
from restock_tracker.exceptions import UpstreamUnavailable
from restock_tracker.infrastructure.shopify import ShopifyClient
from restock_tracker.services.event_source import EventSourceAdapter, group_signups
from restock_tracker.services.models import SignupEvent, SubscriberProfile
from restock_tracker.services.normalization import normalize_id

logger = structlog.get_logger()


@dataclass(frozen=True)
class RestockedProduct:
    """The product an inventory notification refers to."""

    id: str | None
    title: str = ""
    handle: str = ""
    url: str = ""
    image: str = ""
    inventory: int | None = None
    variant_id: str | None = None


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    message: str
    alerts_sent: int = 0
    subscribers_found: int | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "alertsSent": self.alerts_sent,
        }
        if self.subscribers_found is not None:
            body["subscribersFound"] = self.subscribers_found
        return body


def signup_matches(signup: SignupEvent, product_id: str | None, variant_id: str | None) -> bool:
    """A signup matches on normalized product id, or on variant id when both have one."""
    signup_product = normalize_id(signup.product_id)
    if signup_product and signup_product == product_id:
        return True
    signup_variant = normalize_id(signup.variant_id)
    return bool(signup_variant and variant_id and signup_variant == variant_id)


class AlertDispatcher:
    """Finds subscribers waiting on a product and records an alert event for each."""

    def __init__(
        self,
        event_source: EventSourceAdapter,
        shopify: ShopifyClient,
        settings: Settings,
    ):
        self.event_source = event_source
        self.shopify = shopify
        self.settings = settings

    async def lookup_product_by_variant(self, variant_id: str) -> RestockedProduct | None:
        """Resolve a variant to its product details from Shopify."""
        numeric_id = normalize_id(variant_id)
        if not self.shopify.configured or not numeric_id:
            return None

        variant = await self.shopify.get_variant(numeric_id)
        product_id = (variant or {}).get("product_id")
        if not product_id:
            return None

        product = await self.shopify.get_product(str(product_id))
        if not product or product.get("id") is None:
            return None

        images = product.get("images") or [{}]
        image = (product.get("image") or {}).get("src") or images[0].get("src") or ""
        handle = product.get("handle") or ""
        return RestockedProduct(
            id=str(product["id"]),
            title=product.get("title") or "",
            handle=handle,
            url=f"https://{self.shopify.storefront_domain}/products/{handle}",
            image=image,
            inventory=sum(v.get("inventory_quantity") or 0 for v in product.get("variants") or []),
            variant_id=variant_id,
        )

    async def complete_product(self, product: RestockedProduct) -> RestockedProduct:
        """Fill missing product fields from Shopify when only a variant id is known."""
        if product.id or not product.variant_id:
            return product

        logger.info("Looking up product from variant", variant_id=product.variant_id)
        details = await self.lookup_product_by_variant(product.variant_id)
        if details is None:
            return product
        return replace(
            product,
            id=details.id,
            title=product.title or details.title,
            handle=product.handle or details.handle,
            url=product.url or details.url,
            image=product.image or details.image,
            inventory=product.inventory if product.inventory is not None else details.inventory,
        )

    async def find_subscribers(self, product: RestockedProduct) -> list[SubscriberProfile]:
        """Profiles (with an email) that signed up for this product or variant."""
        events = await self.event_source.fetch_metric_events(self.settings.signup_metric_name)
        product_id = normalize_id(product.id)
        variant_id = normalize_id(product.variant_id)
        logger.info("Looking for signups", product_id=product_id, variant_id=variant_id)

        profile_ids = [
            profile_id
            for profile_id, signups in group_signups(events).items()
            if any(signup_matches(s, product_id, variant_id) for s in signups)
        ]
        profiles = await asyncio.gather(*(self._profile_or_none(pid) for pid in profile_ids))
        return [profile for profile in profiles if profile and profile.email]

    async def _profile_or_none(self, profile_id: str) -> SubscriberProfile | None:
        try:
            return await self.event_source.get_profile(profile_id)
        except UpstreamUnavailable as e:
            logger.warning("Failed to fetch profile", profile_id=profile_id, error=str(e))
            return None

    def alert_properties(self, product: RestockedProduct) -> dict[str, Any]:
        return {
            "ProductID": product.id,
            "ProductTitle": product.title,
            "ProductHandle": product.handle,
            "ProductURL": product.url,
            "ProductImage": product.image,
            "InventoryQuantity": product.inventory,
            "AlertDate": datetime.now(timezone.utc).isoformat(),
        }

    async def dispatch(self, product: RestockedProduct) -> DispatchResult:
        """
        Send restock alerts for a product whose inventory changed.

        The product must already carry an id (see ``complete_product``).
        Alerts are only sent when inventory is positive or unknown.
        """
        logger.info(
            "Processing restock",
            product_id=product.id,
            title=product.title,
            inventory=product.inventory,
        )
        if product.inventory is not None and product.inventory <= 0:
            return DispatchResult(True, "Inventory not positive, no alerts sent")

        subscribers = await self.find_subscribers(product)
        logger.info("Found subscribers", product_id=product.id, subscribers=len(subscribers))
        if not subscribers:
            return DispatchResult(True, "No subscribers found")

        properties = self.alert_properties(product)
        outcomes = await asyncio.gather(
            *(
                self.event_source.client.create_event(
                    self.settings.alert_metric_name, profile.email, properties
                )
                for profile in subscribers
            ),
            return_exceptions=True,
        )
        for profile, outcome in zip(subscribers, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Alert failed", email=profile.email, error=str(outcome))

        alerts_sent = sum(1 for outcome in outcomes if outcome is True)
        logger.info("Alerts sent", product_id=product.id, alerts_sent=alerts_sent)
        return DispatchResult(
            True,
            f"Sent {alerts_sent} alerts",
            alerts_sent=alerts_sent,
            subscribers_found=len(subscribers),
        )
