"""Unit tests for restock alert dispatch."""

import json

import httpx
import pytest

from fakes import KLAVIYO, SHOP_DOMAIN, FakeUpstream, profile, signup_event
from restock_tracker.api.dependencies import build_alert_dispatcher
from restock_tracker.config import Settings
from restock_tracker.services import AlertDispatcher
from restock_tracker.services.alert_dispatch import RestockedProduct, signup_matches
from restock_tracker.services.models import SignupEvent

ADMIN = "/admin/api/2024-01"


def _signups(upstream: FakeUpstream, events: list[dict]) -> None:
    upstream.klaviyo_metrics({"Back In Stock Signup": "SIGNUP"})
    upstream.klaviyo_events({"SIGNUP": events})


def _profiles(upstream: FakeUpstream, *profiles: dict) -> None:
    for resource in profiles:
        upstream.json("GET", KLAVIYO, f"/api/profiles/{resource['id']}/", {"data": resource})


def _accept_events(upstream: FakeUpstream, status: int = 202) -> None:
    upstream.route("POST", KLAVIYO, "/api/events/", lambda request: httpx.Response(status))


def _posted(upstream: FakeUpstream) -> list[dict]:
    return [
        json.loads(request.content)
        for request in upstream.calls(KLAVIYO, "/api/events/")
        if request.method == "POST"
    ]


class TestSignupMatches:
    """Product and variant matching for alert targeting."""

    def test_product_match_with_global_id(self) -> None:
        signup = SignupEvent(subscriber_id="P1", product_id="gid://shopify/Product/123")
        assert signup_matches(signup, "123", None)

    def test_variant_match(self) -> None:
        signup = SignupEvent(subscriber_id="P1", product_id="999", variant_id="55")
        assert signup_matches(signup, "123", "55")

    def test_no_match(self) -> None:
        signup = SignupEvent(subscriber_id="P1", product_id="999")
        assert not signup_matches(signup, "123", None)
        assert not signup_matches(SignupEvent(subscriber_id="P1"), None, None)


class TestDispatch:
    """Alert events per subscriber."""

    @pytest.fixture
    def dispatcher(self, http: httpx.AsyncClient, test_settings: Settings) -> AlertDispatcher:
        return build_alert_dispatcher(http, test_settings)

    @pytest.mark.asyncio
    async def test_non_positive_inventory_sends_nothing(
        self, upstream: FakeUpstream, dispatcher: AlertDispatcher
    ) -> None:
        result = await dispatcher.dispatch(RestockedProduct(id="123", inventory=0))
        assert result.success is True
        assert result.message == "Inventory not positive, no alerts sent"
        assert result.alerts_sent == 0
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_no_subscribers(self, upstream: FakeUpstream, dispatcher: AlertDispatcher) -> None:
        _signups(upstream, [signup_event("P1", "999", "2024-01-01T00:00:00Z")])
        result = await dispatcher.dispatch(RestockedProduct(id="123", inventory=5))
        assert result.to_dict() == {
            "success": True,
            "message": "No subscribers found",
            "alertsSent": 0,
        }

    @pytest.mark.asyncio
    async def test_sends_one_event_per_subscriber(
        self, upstream: FakeUpstream, dispatcher: AlertDispatcher
    ) -> None:
        _signups(
            upstream,
            [
                signup_event("P1", "123", "2024-01-01T00:00:00Z"),
                signup_event("P1", "123", "2024-01-02T00:00:00Z"),
                signup_event("P2", "gid://shopify/Product/123", "2024-01-03T00:00:00Z"),
                signup_event("P3", "123", "2024-01-03T00:00:00Z"),
                signup_event("P4", "999", "2024-01-03T00:00:00Z"),
            ],
        )
        # P3 has no email and is skipped
        _profiles(upstream, profile("P1", "a@example.com"), profile("P2", "b@example.com"), profile("P3"))
        _accept_events(upstream)

        product = RestockedProduct(id="123", title="Widget", handle="widget", inventory=4)
        result = await dispatcher.dispatch(product)

        assert result.to_dict() == {
            "success": True,
            "message": "Sent 2 alerts",
            "alertsSent": 2,
            "subscribersFound": 2,
        }
        bodies = _posted(upstream)
        emails = sorted(b["data"]["attributes"]["profile"]["data"]["attributes"]["email"] for b in bodies)
        assert emails == ["a@example.com", "b@example.com"]
        attributes = bodies[0]["data"]["attributes"]
        assert attributes["metric"]["data"]["attributes"]["name"] == "Back In Stock Alert"
        assert attributes["properties"]["ProductID"] == "123"
        assert attributes["properties"]["InventoryQuantity"] == 4
        assert "AlertDate" in attributes["properties"]

    @pytest.mark.asyncio
    async def test_rejected_events_not_counted(
        self, upstream: FakeUpstream, dispatcher: AlertDispatcher
    ) -> None:
        _signups(upstream, [signup_event("P1", "123", "2024-01-01T00:00:00Z")])
        _profiles(upstream, profile("P1", "a@example.com"))
        _accept_events(upstream, status=400)

        result = await dispatcher.dispatch(RestockedProduct(id="123"))
        assert result.alerts_sent == 0
        assert result.subscribers_found == 1
        assert result.message == "Sent 0 alerts"

    @pytest.mark.asyncio
    async def test_unknown_inventory_still_sends(
        self, upstream: FakeUpstream, dispatcher: AlertDispatcher
    ) -> None:
        _signups(upstream, [signup_event("P1", "123", "2024-01-01T00:00:00Z")])
        _profiles(upstream, profile("P1", "a@example.com"))
        _accept_events(upstream)

        result = await dispatcher.dispatch(RestockedProduct(id="123", inventory=None))
        assert result.alerts_sent == 1


class TestCompleteProduct:
    """Variant-only notifications are resolved through Shopify."""

    @pytest.fixture
    def dispatcher(self, http: httpx.AsyncClient, test_settings: Settings) -> AlertDispatcher:
        return build_alert_dispatcher(http, test_settings)

    @pytest.mark.asyncio
    async def test_fills_from_variant(self, upstream: FakeUpstream, dispatcher: AlertDispatcher) -> None:
        upstream.json("GET", SHOP_DOMAIN, f"{ADMIN}/variants/55.json", {"variant": {"id": 55, "product_id": 123}})
        upstream.json(
            "GET",
            SHOP_DOMAIN,
            f"{ADMIN}/products/123.json",
            {
                "product": {
                    "id": 123,
                    "title": "Widget",
                    "handle": "widget",
                    "image": {"src": "https://cdn.example.com/w.png"},
                    "variants": [{"inventory_quantity": 2}, {"inventory_quantity": 1}],
                }
            },
        )

        product = await dispatcher.complete_product(
            RestockedProduct(id=None, title="Given title", variant_id="55")
        )
        assert product.id == "123"
        assert product.title == "Given title"
        assert product.handle == "widget"
        assert product.url == "https://test-shop.com/products/widget"
        assert product.image == "https://cdn.example.com/w.png"
        assert product.inventory == 3

    @pytest.mark.asyncio
    async def test_unknown_variant_leaves_product_unresolved(
        self, upstream: FakeUpstream, dispatcher: AlertDispatcher
    ) -> None:
        product = await dispatcher.complete_product(RestockedProduct(id=None, variant_id="404"))
        assert product.id is None

    @pytest.mark.asyncio
    async def test_product_id_given_skips_lookup(
        self, upstream: FakeUpstream, dispatcher: AlertDispatcher
    ) -> None:
        product = RestockedProduct(id="123", variant_id="55")
        assert await dispatcher.complete_product(product) is product
        assert upstream.requests == []
