"""Domain records flowing through the reconciliation pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from restock_tracker.services.normalization import parse_timestamp


class AlertSource(str, Enum):
    """Where a piece of alert evidence came from."""

    EXPLICIT = "explicit"
    INFERRED = "inferred"


@dataclass(frozen=True)
class SignupEvent:
    """One subscriber's request to hear about one product or variant."""

    subscriber_id: str
    product_id: str | None = None
    variant_id: str | None = None
    product_handle: str | None = None
    product_title: str | None = None
    product_url: str | None = None
    product_image: str | None = None
    signup_date: str | None = None

    @property
    def signed_up_at(self) -> datetime | None:
        return parse_timestamp(self.signup_date)


@dataclass(frozen=True)
class AlertSignal:
    """Evidence that a restock notification reached a subscriber."""

    subscriber_id: str
    sent_at: str | None
    product_id: str | None = None
    source: AlertSource = AlertSource.EXPLICIT

    @property
    def timestamp(self) -> datetime | None:
        return parse_timestamp(self.sent_at)


@dataclass(frozen=True)
class SubscriberProfile:
    """Identity attributes of a subscriber in the event store."""

    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    created: str | None = None

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


@dataclass(frozen=True)
class CorrelatedSignup:
    """A signup (or the no-signup fallback) with its resolved alert status."""

    profile: SubscriberProfile
    signup: SignupEvent | None
    alert_sent: bool = False

    @property
    def signup_date(self) -> str | None:
        if self.signup is None:
            return self.profile.created
        return self.signup.signup_date


@dataclass(frozen=True)
class EnrichmentResult:
    """Live commerce facts for one signup. None marks an unknown value."""

    inventory: int | None = None
    sku: str | None = None
    ordered: bool = False
    degraded: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class EnrichedSignupRecord:
    """The reconciled output row for one (subscriber, signup) pair."""

    id: str
    profile_id: str
    email: str | None
    name: str
    product_id: str | None
    product_title: str | None
    product_url: str | None
    variant_id: str | None
    signup_date: str | None
    alert_sent: bool
    ordered: bool
    inventory: int | None
    sku: str | None
    commerce_customer_id: str | None
