"""Event source adapter over the Klaviyo event and profile store.

Resolves metric names to ids, pages raw events and turns them into typed
records grouped by subscriber.
"""

from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any, TypeVar

import structlog

from restock_tracker.infrastructure.klaviyo import KlaviyoClient
from restock_tracker.services.models import (
    AlertSignal,
    AlertSource,
    SignupEvent,
    SubscriberProfile,
)
from restock_tracker.services.signal_classifier import is_restock_message
from shared.constants import SIGNUP_PROPERTY_KEYS

logger = structlog.get_logger()

T = TypeVar("T")


def event_profile_id(event: dict[str, Any]) -> str | None:
    """Return the subscriber id an event is attached to, if any."""
    return (((event.get("relationships") or {}).get("profile") or {}).get("data") or {}).get("id")


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def event_properties(event: dict[str, Any]) -> dict[str, Any]:
    return (event.get("attributes") or {}).get("event_properties") or {}


def event_datetime(event: dict[str, Any]) -> str | None:
    return (event.get("attributes") or {}).get("datetime") or None


def signup_from_event(profile_id: str, event: dict[str, Any]) -> SignupEvent:
    """Build a SignupEvent; the record timestamp stands in for a missing SignupDate."""
    props = event_properties(event)
    values = {field: _text(props.get(key)) for field, key in SIGNUP_PROPERTY_KEYS.items()}
    values["signup_date"] = values["signup_date"] or event_datetime(event)
    return SignupEvent(subscriber_id=profile_id, **values)


def profile_from_resource(resource: dict[str, Any]) -> SubscriberProfile:
    attributes = resource.get("attributes") or {}
    return SubscriberProfile(
        id=resource["id"],
        email=attributes.get("email") or None,
        first_name=attributes.get("first_name") or None,
        last_name=attributes.get("last_name") or None,
        created=attributes.get("created") or None,
    )


def group_by_subscriber(
    events: Iterable[dict[str, Any]],
    build: Callable[[str, dict[str, Any]], T | None],
) -> Mapping[str, tuple[T, ...]]:
    """
    Group events into typed records keyed by subscriber id.

    Events without a profile relationship are skipped, as are events for
    which ``build`` returns None. Store order is preserved per subscriber.
    """
    grouped: dict[str, list[T]] = {}
    for event in events:
        profile_id = event_profile_id(event)
        if not profile_id:
            continue
        record = build(profile_id, event)
        if record is None:
            continue
        grouped.setdefault(profile_id, []).append(record)
    return MappingProxyType({key: tuple(records) for key, records in grouped.items()})


def group_signups(events: Iterable[dict[str, Any]]) -> Mapping[str, tuple[SignupEvent, ...]]:
    return group_by_subscriber(events, signup_from_event)


def group_alerts(events: Iterable[dict[str, Any]]) -> Mapping[str, tuple[AlertSignal, ...]]:
    def build(profile_id: str, event: dict[str, Any]) -> AlertSignal:
        return AlertSignal(
            subscriber_id=profile_id,
            product_id=_text(event_properties(event).get("ProductID")),
            sent_at=event_datetime(event),
            source=AlertSource.EXPLICIT,
        )

    return group_by_subscriber(events, build)


def group_inferred_alerts(
    events: Iterable[dict[str, Any]],
) -> Mapping[str, tuple[AlertSignal, ...]]:
    """Keep only received emails that read like restock notifications."""

    def build(profile_id: str, event: dict[str, Any]) -> AlertSignal | None:
        props = event_properties(event)
        preview = (props.get("$internal") or {}).get("Preview Text")
        if not is_restock_message(props.get("Subject"), preview):
            return None
        return AlertSignal(
            subscriber_id=profile_id,
            product_id=None,
            sent_at=event_datetime(event),
            source=AlertSource.INFERRED,
        )

    return group_by_subscriber(events, build)


class EventSourceAdapter:
    """Typed access to metrics, events and profiles in the event store."""

    def __init__(self, client: KlaviyoClient):
        self.client = client

    async def resolve_metric_id(self, name: str) -> str | None:
        """
        Find a metric id by display name (case-insensitive exact match).

        A missing metric means no events have been recorded yet, so None is
        returned rather than raising.
        """
        wanted = name.lower()
        for metric in await self.client.list_metrics():
            metric_name = (metric.get("attributes") or {}).get("name") or ""
            if metric_name.lower() == wanted:
                return metric.get("id")
        logger.info("Metric not found", metric_name=name)
        return None

    async def fetch_events(
        self, metric_id: str, subscriber_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Page a metric's raw events, newest first."""
        events = await self.client.list_events(metric_id, profile_id=subscriber_id)
        logger.debug(
            "Fetched metric events",
            metric_id=metric_id,
            subscriber_id=subscriber_id,
            events=len(events),
        )
        return events

    async def fetch_metric_events(self, name: str) -> list[dict[str, Any]]:
        """Resolve a metric by name and fetch its events; empty if it does not exist."""
        metric_id = await self.resolve_metric_id(name)
        if metric_id is None:
            return []
        return await self.fetch_events(metric_id)

    async def list_profiles(self, list_id: str) -> list[SubscriberProfile]:
        """List every profile on a list. Failure here is not recoverable."""
        resources = await self.client.list_profiles_in_list(list_id)
        logger.info("Fetched list profiles", list_id=list_id, profiles=len(resources))
        return [profile_from_resource(resource) for resource in resources]

    async def get_profile(self, profile_id: str) -> SubscriberProfile | None:
        resource = await self.client.get_profile(profile_id)
        if not resource:
            return None
        return profile_from_resource(resource)
