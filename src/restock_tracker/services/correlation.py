"""Correlation engine: decides, per signup, whether a restock alert followed it.

Two alert sources are merged per subscriber:

1. Explicit "Back In Stock Alert" events, emitted by the inventory webhook,
   which carry the product id they were sent for.
2. "Received Email" events whose subject or preview text reads like a restock
   notification. These carry no product id.

An alert satisfies a signup when it is strictly later than the signup and
either names the same product or names no product at all. The second case is
a deliberate over-approximation: a subscriber waiting on two products who
receives one restock email is reported as alerted for both.
"""

import asyncio
from collections.abc import Mapping, Sequence
from types import MappingProxyType

import structlog

from restock_tracker.config import Settings
from restock_tracker.exceptions import UpstreamUnavailable
from restock_tracker.services.event_source import (
    EventSourceAdapter,
    group_alerts,
    group_inferred_alerts,
    group_signups,
)
from restock_tracker.services.models import (
    AlertSignal,
    CorrelatedSignup,
    SignupEvent,
    SubscriberProfile,
)
from restock_tracker.services.normalization import EPOCH, normalize_id

logger = structlog.get_logger()

SignupIndex = Mapping[str, tuple[SignupEvent, ...]]
AlertIndex = Mapping[str, tuple[AlertSignal, ...]]


def merge_alert_indexes(explicit: AlertIndex, inferred: AlertIndex) -> AlertIndex:
    """Union of both sources per subscriber, explicit signals first."""
    merged: dict[str, tuple[AlertSignal, ...]] = dict(explicit)
    for subscriber_id, signals in inferred.items():
        merged[subscriber_id] = merged.get(subscriber_id, ()) + signals
    return MappingProxyType(merged)


def resolve_alert_sent(signup: SignupEvent, alerts: Sequence[AlertSignal]) -> bool:
    """
    Return True if any alert satisfies the signup.

    An alert satisfies a signup when its timestamp is strictly after the
    signup's and it either has no product id or the same normalized product
    id. Alerts without a readable timestamp never match. A signup with no
    date compares as the epoch start; one with an unreadable date is never
    satisfied.
    """
    signed_up_at = signup.signed_up_at
    if signed_up_at is None:
        if signup.signup_date:
            return False
        signed_up_at = EPOCH
    signup_product = normalize_id(signup.product_id)

    for alert in alerts:
        sent_at = alert.timestamp
        if sent_at is None or sent_at <= signed_up_at:
            continue
        if alert.product_id is None:
            return True
        if normalize_id(alert.product_id) == signup_product:
            return True
    return False


def correlate(
    profile: SubscriberProfile,
    signups: Sequence[SignupEvent],
    alerts: Sequence[AlertSignal],
) -> list[CorrelatedSignup]:
    """Resolve every signup of one subscriber against that subscriber's alerts."""
    if not signups:
        # Legacy list members with no signup event still get a row
        return [CorrelatedSignup(profile=profile, signup=None, alert_sent=False)]
    return [
        CorrelatedSignup(
            profile=profile,
            signup=signup,
            alert_sent=resolve_alert_sent(signup, alerts),
        )
        for signup in signups
    ]


class CorrelationEngine:
    """Builds per-run signup and alert indexes from the event store."""

    def __init__(self, event_source: EventSourceAdapter, settings: Settings):
        self.event_source = event_source
        self.settings = settings

    async def _fetch_or_empty(self, metric_name: str) -> list[dict]:
        try:
            return await self.event_source.fetch_metric_events(metric_name)
        except UpstreamUnavailable as e:
            logger.warning(
                "Event source unavailable, continuing without it",
                metric_name=metric_name,
                error=str(e),
            )
            return []

    async def build_signup_index(self) -> SignupIndex:
        """Map each subscriber to their signup events. Empty if the metric is missing."""
        events = await self._fetch_or_empty(self.settings.signup_metric_name)
        index = group_signups(events)
        logger.info("Built signup index", events=len(events), subscribers=len(index))
        return index

    async def build_alert_index(self) -> AlertIndex:
        """Map each subscriber to explicit alerts followed by inferred ones."""
        explicit_events, received_events = await asyncio.gather(
            self._fetch_or_empty(self.settings.alert_metric_name),
            self._fetch_or_empty(self.settings.received_email_metric_name),
        )
        explicit = group_alerts(explicit_events)
        inferred = group_inferred_alerts(received_events)
        index = merge_alert_indexes(explicit, inferred)
        logger.info(
            "Built alert index",
            explicit_events=len(explicit_events),
            received_events=len(received_events),
            subscribers=len(index),
        )
        return index

    async def build_indexes(self) -> tuple[SignupIndex, AlertIndex]:
        signups, alerts = await asyncio.gather(
            self.build_signup_index(), self.build_alert_index()
        )
        return signups, alerts

    def correlate_profile(
        self,
        profile: SubscriberProfile,
        signup_index: SignupIndex,
        alert_index: AlertIndex,
    ) -> list[CorrelatedSignup]:
        return correlate(
            profile,
            signup_index.get(profile.id, ()),
            alert_index.get(profile.id, ()),
        )
