"""Enrichment of correlated signups with live Shopify facts.

Every lookup is best-effort. A lookup that cannot run (missing configuration
or input) answers its unknown value without touching the network, and a
lookup that fails is logged and recorded in ``EnrichmentResult.degraded``
instead of failing the record.
"""

import asyncio
from collections.abc import Awaitable, Sequence
from typing import Any, TypeVar

import structlog

from restock_tracker.infrastructure.shopify import ShopifyClient
from restock_tracker.services.models import (
    CorrelatedSignup,
    EnrichmentResult,
    SubscriberProfile,
)
from restock_tracker.services.normalization import EPOCH, normalize_id, parse_timestamp

logger = structlog.get_logger()

T = TypeVar("T")

INVENTORY = "inventory"
ORDERS = "orders"
CUSTOMER = "customer"


def summarize_variants(
    variants: Sequence[dict[str, Any]], variant_id: str | None
) -> tuple[int, str | None]:
    """
    Total stock across variants plus a representative SKU.

    The SKU comes from the variant matching ``variant_id`` when there is one,
    otherwise from the first variant.
    """
    inventory = sum(v.get("inventory_quantity") or 0 for v in variants)

    sku = None
    wanted = normalize_id(variant_id)
    if wanted:
        match = next((v for v in variants if str(v.get("id")) == wanted), None)
        sku = (match or {}).get("sku") or None
    if sku is None and variants:
        sku = variants[0].get("sku") or None
    return inventory, sku


def order_contains_product(order: dict[str, Any], product_id: str) -> bool:
    return any(
        str(item.get("product_id")) == product_id for item in order.get("line_items") or []
    )


class EnrichmentService:
    """Fans out Shopify lookups for each subscriber's signups."""

    def __init__(self, shopify: ShopifyClient):
        self.shopify = shopify

    async def fetch_inventory_and_sku(
        self, product_id: str | None, variant_id: str | None
    ) -> tuple[int | None, str | None]:
        """Return (total inventory, sku); (None, None) when unknown."""
        numeric_id = normalize_id(product_id)
        if not self.shopify.configured or not numeric_id:
            return None, None

        product = await self.shopify.get_product(numeric_id)
        if product is None:
            return None, None
        return summarize_variants(product.get("variants") or [], variant_id)

    async def resolve_commerce_customer_id(self, email: str | None) -> str | None:
        """Return the first Shopify customer id matching the email."""
        if not self.shopify.configured or not email:
            return None

        customers = await self.shopify.search_customers(email)
        if not customers or customers[0].get("id") is None:
            return None
        return str(customers[0]["id"])

    async def was_ordered_after(
        self, email: str | None, product_id: str | None, signup_date: str | None
    ) -> bool:
        """True if an order placed at or after signup contains the product."""
        numeric_id = normalize_id(product_id)
        if not self.shopify.configured or not email or not numeric_id:
            return False

        signed_up_at = parse_timestamp(signup_date) or EPOCH
        for order in await self.shopify.list_orders(email):
            created_at = parse_timestamp(order.get("created_at"))
            if created_at is None or created_at < signed_up_at:
                continue
            if order_contains_product(order, numeric_id):
                return True
        return False

    async def _best_effort(
        self, lookup: str, awaitable: Awaitable[T], fallback: T, **context: Any
    ) -> tuple[T, bool]:
        """Await a lookup, returning (value, ok); failures yield the fallback."""
        try:
            return await awaitable, True
        except Exception as e:
            logger.warning(
                "Enrichment lookup failed", lookup=lookup, error=str(e), **context
            )
            return fallback, False

    async def enrich_signup(self, email: str | None, correlated: CorrelatedSignup) -> EnrichmentResult:
        """Inventory, SKU and order status for one signup, looked up concurrently."""
        signup = correlated.signup
        if signup is None:
            return EnrichmentResult()

        context = {"profile_id": correlated.profile.id, "product_id": signup.product_id}
        (stock, stock_ok), (ordered, orders_ok) = await asyncio.gather(
            self._best_effort(
                INVENTORY,
                self.fetch_inventory_and_sku(signup.product_id, signup.variant_id),
                (None, None),
                **context,
            ),
            self._best_effort(
                ORDERS,
                self.was_ordered_after(email, signup.product_id, signup.signup_date),
                False,
                **context,
            ),
        )
        inventory, sku = stock
        degraded = tuple(
            name for name, ok in ((INVENTORY, stock_ok), (ORDERS, orders_ok)) if not ok
        )
        return EnrichmentResult(inventory=inventory, sku=sku, ordered=ordered, degraded=degraded)

    async def enrich_subscriber(
        self, profile: SubscriberProfile, correlated: Sequence[CorrelatedSignup]
    ) -> tuple[str | None, list[EnrichmentResult]]:
        """
        Enrich all of one subscriber's signups.

        The customer id lookup runs once per subscriber, concurrently with the
        per-signup lookups.

        Returns:
            (commerce customer id or None, one EnrichmentResult per signup)
        """
        customer_lookup = self._best_effort(
            CUSTOMER,
            self.resolve_commerce_customer_id(profile.email),
            None,
            profile_id=profile.id,
        )
        (customer_id, _), *results = await asyncio.gather(
            customer_lookup,
            *(self.enrich_signup(profile.email, item) for item in correlated),
        )
        return customer_id, list(results)
