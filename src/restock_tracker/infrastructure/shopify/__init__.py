"""Shopify Admin REST API client."""

import asyncio
from contextlib import nullcontext
from typing import Any

import httpx
import structlog

from restock_tracker.config import Settings
from restock_tracker.exceptions import UpstreamUnavailable

logger = structlog.get_logger()

SERVICE = "shopify"


class ShopifyClient:
    """
    Async Shopify Admin client for product, order and customer lookups.

    Lookups answer None (or an empty list) on a non-success status; transport
    failures raise UpstreamUnavailable so callers can decide how to degrade.
    """

    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        self.http = http
        self.settings = settings
        self._semaphore = (
            asyncio.Semaphore(settings.shopify_max_concurrency)
            if settings.shopify_max_concurrency > 0
            else None
        )

    @property
    def configured(self) -> bool:
        return self.settings.shopify_configured

    @property
    def storefront_domain(self) -> str:
        return self.settings.shopify_store_domain.replace(".myshopify.com", ".com")

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        url = f"{self.settings.shopify_base_url}/{path.lstrip('/')}"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.settings.shopify_admin_token,
        }
        async with self._semaphore or nullcontext():
            try:
                response = await self.http.get(url, params=params, headers=headers)
            except httpx.TransportError as e:
                raise UpstreamUnavailable(SERVICE, f"GET {path} failed: {e}") from e

        if not response.is_success:
            logger.warning("Shopify request failed", path=path, status=response.status_code)
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(SERVICE, f"invalid JSON from {path}") from e

    async def get_product(self, product_id: str) -> dict[str, Any] | None:
        data = await self._get(f"products/{product_id}.json")
        return (data or {}).get("product")

    async def get_variant(self, variant_id: str) -> dict[str, Any] | None:
        data = await self._get(f"variants/{variant_id}.json")
        return (data or {}).get("variant")

    async def search_customers(self, email: str) -> list[dict[str, Any]]:
        data = await self._get("customers/search.json", params={"query": f"email:{email}"})
        return (data or {}).get("customers") or []

    async def list_orders(self, email: str) -> list[dict[str, Any]]:
        data = await self._get(
            "orders.json",
            params={
                "email": email,
                "status": "any",
                "limit": self.settings.shopify_order_limit,
            },
        )
        return (data or {}).get("orders") or []
