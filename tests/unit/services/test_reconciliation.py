"""Unit tests for the reconciliation pipeline."""

import httpx
import pytest

from fakes import (
    KLAVIYO,
    SHOP_DOMAIN,
    FakeUpstream,
    event,
    profile,
    received_email,
    signup_event,
)
from restock_tracker.api.dependencies import build_reconciliation_service
from restock_tracker.config import Settings
from restock_tracker.exceptions import ConfigurationError, UpstreamUnavailable
from restock_tracker.services import ReconciliationService
from restock_tracker.services.models import (
    CorrelatedSignup,
    EnrichedSignupRecord,
    EnrichmentResult,
    SignupEvent,
    SubscriberProfile,
)
from restock_tracker.services.reconciliation import assemble_record, record_id, sort_records

ADMIN = "/admin/api/2024-01"


def _record(record_id: str, signup_date: str | None) -> EnrichedSignupRecord:
    return EnrichedSignupRecord(
        id=record_id,
        profile_id=record_id,
        email=None,
        name="",
        product_id=None,
        product_title=None,
        product_url=None,
        variant_id=None,
        signup_date=signup_date,
        alert_sent=False,
        ordered=False,
        inventory=None,
        sku=None,
        commerce_customer_id=None,
    )


class TestAssembly:
    """Record ids, field mapping and ordering."""

    profile = SubscriberProfile(id="P1", email="a@example.com", first_name="Ada", last_name="Lovelace")

    def test_record_id_for_signup(self) -> None:
        signup = SignupEvent(subscriber_id="P1", product_id="123", signup_date="2024-03-01T10:00:00Z")
        correlated = CorrelatedSignup(profile=self.profile, signup=signup)
        assert record_id(correlated) == "P1-123-2024-03-01T10:00:00Z"

    def test_record_id_without_product(self) -> None:
        signup = SignupEvent(subscriber_id="P1", signup_date="2024-03-01T10:00:00Z")
        correlated = CorrelatedSignup(profile=self.profile, signup=signup)
        assert record_id(correlated) == "P1-null-2024-03-01T10:00:00Z"

    def test_fallback_record(self) -> None:
        correlated = CorrelatedSignup(profile=SubscriberProfile(id="P2", created="2023-01-01T00:00:00Z"), signup=None)
        record = assemble_record(correlated, EnrichmentResult(), None)
        assert record.id == "P2"
        assert record.name == ""
        assert record.product_id is None
        assert record.signup_date == "2023-01-01T00:00:00Z"
        assert record.alert_sent is False
        assert record.ordered is False

    def test_enrichment_fields_copied(self) -> None:
        signup = SignupEvent(subscriber_id="P1", product_id="123", variant_id="9")
        correlated = CorrelatedSignup(profile=self.profile, signup=signup, alert_sent=True)
        record = assemble_record(
            correlated, EnrichmentResult(inventory=4, sku="W-S", ordered=True), "42"
        )
        assert record.name == "Ada Lovelace"
        assert (record.alert_sent, record.ordered, record.inventory, record.sku) == (
            True,
            True,
            4,
            "W-S",
        )
        assert record.commerce_customer_id == "42"
        assert record.variant_id == "9"

    def test_sort_newest_first_missing_last(self) -> None:
        records = [
            _record("old", "2024-01-01T00:00:00Z"),
            _record("none", None),
            _record("new", "2024-03-01T00:00:00Z"),
            _record("bad", "yesterday"),
            _record("offset", "2024-02-01T00:00:00+05:00"),
        ]
        assert [r.id for r in sort_records(records)][:3] == ["new", "offset", "old"]
        assert {r.id for r in sort_records(records)[3:]} == {"none", "bad"}


class TestReconciliationService:
    """End-to-end runs against fake upstreams."""

    @pytest.fixture
    def service(self, http: httpx.AsyncClient, test_settings: Settings) -> ReconciliationService:
        return build_reconciliation_service(http, test_settings)

    @pytest.mark.asyncio
    async def test_full_run(self, upstream: FakeUpstream, service: ReconciliationService) -> None:
        upstream.klaviyo_list(
            "LIST1",
            [
                profile("P1", "a@example.com", "Ada", "Lovelace"),
                profile("P2", "b@example.com", created="2023-06-01T00:00:00Z"),
            ],
        )
        upstream.klaviyo_metrics(
            {
                "Back In Stock Signup": "SIGNUP",
                "Back In Stock Alert": "ALERT",
                "Received Email": "RECEIVED",
            }
        )
        upstream.klaviyo_events(
            {
                "SIGNUP": [
                    signup_event("P1", "111", "2024-03-01T10:00:00Z"),
                    signup_event("P1", "222", "2024-02-01T10:00:00Z"),
                ],
                "ALERT": [event("P1", "2024-03-02T10:00:00Z", {"ProductID": "111"})],
                "RECEIVED": [received_email("P2", "2024-03-02T10:00:00Z", "Back in stock")],
            }
        )
        for product_id, stock in (("111", 3), ("222", 0)):
            upstream.json(
                "GET",
                SHOP_DOMAIN,
                f"{ADMIN}/products/{product_id}.json",
                {"product": {"variants": [{"id": 1, "sku": f"SKU-{product_id}", "inventory_quantity": stock}]}},
            )
        upstream.json(
            "GET",
            SHOP_DOMAIN,
            f"{ADMIN}/orders.json",
            {"orders": [{"created_at": "2024-02-15T00:00:00Z", "line_items": [{"product_id": 222}]}]},
        )
        upstream.json(
            "GET", SHOP_DOMAIN, f"{ADMIN}/customers/search.json", {"customers": [{"id": 7}]}
        )

        records = await service.run()

        assert [r.id for r in records] == [
            "P1-111-2024-03-01T10:00:00Z",
            "P1-222-2024-02-01T10:00:00Z",
            "P2",
        ]
        first, second, fallback = records
        assert (first.alert_sent, first.ordered, first.inventory, first.sku) == (
            True,
            False,
            3,
            "SKU-111",
        )
        assert (second.alert_sent, second.ordered, second.inventory) == (False, True, 0)
        assert first.commerce_customer_id == "7"
        assert fallback.alert_sent is False
        assert fallback.product_id is None
        assert fallback.signup_date == "2023-06-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_empty_list(self, upstream: FakeUpstream, service: ReconciliationService) -> None:
        upstream.klaviyo_list("LIST1", [])
        upstream.klaviyo_metrics({})
        assert await service.run() == []

    @pytest.mark.asyncio
    async def test_list_failure_fails_run(
        self, upstream: FakeUpstream, service: ReconciliationService
    ) -> None:
        upstream.klaviyo_metrics({})
        upstream.fail("GET", KLAVIYO, "/api/lists/LIST1/profiles/")
        with pytest.raises(UpstreamUnavailable):
            await service.run()

    @pytest.mark.asyncio
    async def test_missing_credentials(
        self, upstream: FakeUpstream, http: httpx.AsyncClient, test_settings: Settings
    ) -> None:
        settings = test_settings.model_copy(update={"klaviyo_private_api_key": ""})
        with pytest.raises(ConfigurationError, match="KLAVIYO_PRIVATE_API_KEY"):
            await build_reconciliation_service(http, settings).run()
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_shopify_outage_degrades_records(
        self, upstream: FakeUpstream, service: ReconciliationService
    ) -> None:
        upstream.klaviyo_list("LIST1", [profile("P1", "a@example.com")])
        upstream.klaviyo_metrics({"Back In Stock Signup": "SIGNUP"})
        upstream.klaviyo_events({"SIGNUP": [signup_event("P1", "111", "2024-03-01T10:00:00Z")]})
        for path in ("products/111.json", "orders.json", "customers/search.json"):
            upstream.fail("GET", SHOP_DOMAIN, f"{ADMIN}/{path}")

        (record,) = await service.run()
        assert record.product_id == "111"
        assert (record.inventory, record.sku, record.ordered) == (None, None, False)
        assert record.commerce_customer_id is None
