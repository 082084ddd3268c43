"""Klaviyo REST API client."""

from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog

from restock_tracker.config import Settings
from restock_tracker.exceptions import ConfigurationError, UpstreamUnavailable

logger = structlog.get_logger()

SERVICE = "klaviyo"


def decode_json(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON body, treating malformed payloads as an upstream failure."""
    try:
        payload = response.json()
    except ValueError as e:
        raise UpstreamUnavailable(SERVICE, f"invalid JSON from {response.url}") from e
    return payload if isinstance(payload, dict) else {}


class KlaviyoClient:
    """Thin async wrapper over the Klaviyo JSON:API endpoints used by the tracker."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings):
        self.http = http
        self.settings = settings
        self.base_url = settings.klaviyo_api_base_url.rstrip("/")

    def ensure_configured(self) -> None:
        if not self.settings.klaviyo_private_api_key:
            raise ConfigurationError("KLAVIYO_PRIVATE_API_KEY not set")

    def _headers(self) -> dict[str, str]:
        self.ensure_configured()
        return {
            "Authorization": f"Klaviyo-API-Key {self.settings.klaviyo_private_api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "revision": self.settings.klaviyo_revision,
        }

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request, translating transport failures into UpstreamUnavailable."""
        try:
            return await self.http.request(
                method, self._url(path), params=params, json=json, headers=self._headers()
            )
        except httpx.TransportError as e:
            raise UpstreamUnavailable(SERVICE, f"{method} {path} failed: {e}") from e

    async def paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        strict: bool = False,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yield the ``data`` array of each page, following ``links.next``.

        Args:
            path: Endpoint path relative to the API base URL
            params: Query parameters for the first page
            strict: Raise UpstreamUnavailable on a non-success status instead
                of stopping quietly

        Yields:
            list of JSON:API resource objects per page
        """
        url: str | None = path
        page_params = params
        pages = 0

        while url and pages < self.settings.klaviyo_max_pages:
            response = await self.request("GET", url, params=page_params)
            if not response.is_success:
                if strict:
                    raise UpstreamUnavailable(
                        SERVICE,
                        f"Klaviyo API error: {response.status_code}",
                        status_code=response.status_code,
                    )
                logger.warning(
                    "Klaviyo page request failed",
                    path=path,
                    status=response.status_code,
                    pages_read=pages,
                )
                return

            payload = decode_json(response)
            pages += 1
            yield payload.get("data") or []

            url = (payload.get("links") or {}).get("next")
            # next links already carry the cursor and original query
            page_params = None

    async def list_metrics(self) -> list[dict[str, Any]]:
        metrics: list[dict[str, Any]] = []
        async for page in self.paginate("/metrics/"):
            metrics.extend(page)
        return metrics

    async def list_events(
        self, metric_id: str, profile_id: str | None = None
    ) -> list[dict[str, Any]]:
        """List events for a metric, newest first, optionally for one profile."""
        event_filter = f'equals(metric_id,"{metric_id}")'
        if profile_id:
            event_filter = f'and({event_filter},equals(profile_id,"{profile_id}"))'
        params = {
            "filter": event_filter,
            "page[size]": self.settings.klaviyo_page_size,
            "sort": "-datetime",
        }
        events: list[dict[str, Any]] = []
        async for page in self.paginate("/events/", params):
            events.extend(page)
        return events

    async def list_profiles_in_list(self, list_id: str) -> list[dict[str, Any]]:
        params = {"page[size]": self.settings.klaviyo_page_size}
        profiles: list[dict[str, Any]] = []
        async for page in self.paginate(f"/lists/{list_id}/profiles/", params, strict=True):
            profiles.extend(page)
        return profiles

    async def get_profile(self, profile_id: str) -> dict[str, Any] | None:
        response = await self.request("GET", f"/profiles/{profile_id}/")
        if not response.is_success:
            logger.warning(
                "Klaviyo profile lookup failed",
                profile_id=profile_id,
                status=response.status_code,
            )
            return None
        return decode_json(response).get("data")

    async def create_event(
        self, metric_name: str, email: str, properties: dict[str, Any]
    ) -> bool:
        """Record an event for a profile; returns True when Klaviyo accepts it."""
        body = {
            "data": {
                "type": "event",
                "attributes": {
                    "metric": {
                        "data": {"type": "metric", "attributes": {"name": metric_name}}
                    },
                    "profile": {
                        "data": {"type": "profile", "attributes": {"email": email}}
                    },
                    "properties": properties,
                },
            }
        }
        response = await self.request("POST", "/events/", json=body)
        if not response.is_success:
            logger.error(
                "Klaviyo event creation failed",
                metric=metric_name,
                email=email,
                status=response.status_code,
                body=response.text,
            )
            return False
        return True
