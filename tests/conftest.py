"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from fakes import SHOP_DOMAIN, FakeUpstream
from restock_tracker.api.dependencies import get_http_client
from restock_tracker.config import Settings, get_settings
from restock_tracker.infrastructure.klaviyo import KlaviyoClient
from restock_tracker.infrastructure.shopify import ShopifyClient
from restock_tracker.main import create_app
from restock_tracker.services import EventSourceAdapter


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        _env_file=None,
        app_env="test",
        debug=True,
        klaviyo_private_api_key="pk_test",
        klaviyo_list_id="LIST1",
        shopify_store_domain=SHOP_DOMAIN,
        shopify_admin_token="shpat_test",
    )


@pytest.fixture
def app(test_settings: Settings) -> Any:
    """Create test application."""
    # Override settings
    def get_test_settings() -> Settings:
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest.fixture
def upstream() -> FakeUpstream:
    """Fake Klaviyo and Shopify APIs."""
    return FakeUpstream()


@pytest_asyncio.fixture
async def http(upstream: FakeUpstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client whose requests are served by the fake upstream."""
    async with upstream.client() as client:
        yield client


@pytest.fixture
def klaviyo(http: httpx.AsyncClient, test_settings: Settings) -> KlaviyoClient:
    return KlaviyoClient(http, test_settings)


@pytest.fixture
def shopify(http: httpx.AsyncClient, test_settings: Settings) -> ShopifyClient:
    return ShopifyClient(http, test_settings)


@pytest.fixture
def event_source(klaviyo: KlaviyoClient) -> EventSourceAdapter:
    return EventSourceAdapter(klaviyo)


@pytest.fixture
def wired_client(app: Any, upstream: FakeUpstream) -> TestClient:
    """Test client whose outbound Klaviyo and Shopify calls hit the fake upstream."""

    async def get_test_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
        async with upstream.client() as http_client:
            yield http_client

    app.dependency_overrides[get_http_client] = get_test_http_client
    return TestClient(app)
