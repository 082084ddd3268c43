"""Reconciliation of signups, alerts and commerce facts into one ordered list."""

import asyncio
from collections.abc import Iterable, Sequence

import structlog

from restock_tracker.config import Settings
from restock_tracker.services.correlation import (
    AlertIndex,
    CorrelationEngine,
    SignupIndex,
)
from restock_tracker.services.enrichment import EnrichmentService
from restock_tracker.services.event_source import EventSourceAdapter
from restock_tracker.services.models import (
    CorrelatedSignup,
    EnrichedSignupRecord,
    EnrichmentResult,
    SubscriberProfile,
)
from restock_tracker.services.normalization import EPOCH, parse_timestamp

logger = structlog.get_logger()


def record_id(correlated: CorrelatedSignup) -> str:
    """Composite row id; the bare profile id for members without signups."""
    if correlated.signup is None:
        return correlated.profile.id
    signup = correlated.signup
    return f"{correlated.profile.id}-{signup.product_id or 'null'}-{signup.signup_date or 'null'}"


def assemble_record(
    correlated: CorrelatedSignup,
    enrichment: EnrichmentResult,
    commerce_customer_id: str | None,
) -> EnrichedSignupRecord:
    profile = correlated.profile
    signup = correlated.signup
    return EnrichedSignupRecord(
        id=record_id(correlated),
        profile_id=profile.id,
        email=profile.email,
        name=profile.display_name,
        product_id=signup.product_id if signup else None,
        product_title=signup.product_title if signup else None,
        product_url=signup.product_url if signup else None,
        variant_id=signup.variant_id if signup else None,
        signup_date=correlated.signup_date,
        alert_sent=correlated.alert_sent,
        ordered=enrichment.ordered,
        inventory=enrichment.inventory,
        sku=enrichment.sku,
        commerce_customer_id=commerce_customer_id,
    )


def sort_records(records: Iterable[EnrichedSignupRecord]) -> list[EnrichedSignupRecord]:
    """Newest signup first; missing or unreadable dates sort as the epoch."""
    return sorted(
        records,
        key=lambda r: parse_timestamp(r.signup_date) or EPOCH,
        reverse=True,
    )


class ReconciliationService:
    """
    Runs the full pipeline for one request.

    1. Fetch list profiles, signup index and alert index concurrently
    2. Correlate each profile's signups with its alerts
    3. Enrich every subscriber concurrently from Shopify
    4. Assemble records and sort newest first
    """

    def __init__(
        self,
        event_source: EventSourceAdapter,
        correlation: CorrelationEngine,
        enrichment: EnrichmentService,
        settings: Settings,
    ):
        self.event_source = event_source
        self.correlation = correlation
        self.enrichment = enrichment
        self.settings = settings

    async def _reconcile_profile(
        self,
        profile: SubscriberProfile,
        signup_index: SignupIndex,
        alert_index: AlertIndex,
    ) -> list[EnrichedSignupRecord]:
        correlated = self.correlation.correlate_profile(profile, signup_index, alert_index)
        customer_id, enrichments = await self.enrichment.enrich_subscriber(profile, correlated)
        return [
            assemble_record(item, enrichment, customer_id)
            for item, enrichment in zip(correlated, enrichments)
        ]

    async def run(self) -> list[EnrichedSignupRecord]:
        """
        Reconcile every list member's signups.

        Raises:
            ConfigurationError: Klaviyo credentials are missing
            UpstreamUnavailable: the list profiles could not be fetched
        """
        self.event_source.client.ensure_configured()

        indexes = asyncio.ensure_future(self.correlation.build_indexes())
        try:
            profiles = await self.event_source.list_profiles(self.settings.klaviyo_list_id)
        except BaseException:
            # no profiles, no run: stop the index fetches too
            indexes.cancel()
            raise
        signup_index, alert_index = await indexes

        per_profile: Sequence[list[EnrichedSignupRecord]] = await asyncio.gather(
            *(
                self._reconcile_profile(profile, signup_index, alert_index)
                for profile in profiles
            )
        )
        records = sort_records(record for batch in per_profile for record in batch)

        logger.info(
            "Reconciliation completed",
            profiles=len(profiles),
            records=len(records),
            alerts_sent=sum(1 for r in records if r.alert_sent),
            ordered=sum(1 for r in records if r.ordered),
        )
        return records
