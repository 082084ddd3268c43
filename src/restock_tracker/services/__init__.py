"""Business logic services."""

from restock_tracker.services.alert_dispatch import AlertDispatcher
from restock_tracker.services.correlation import CorrelationEngine
from restock_tracker.services.enrichment import EnrichmentService
from restock_tracker.services.event_source import EventSourceAdapter
from restock_tracker.services.reconciliation import ReconciliationService

__all__ = [
    "AlertDispatcher",
    "CorrelationEngine",
    "EnrichmentService",
    "EventSourceAdapter",
    "ReconciliationService",
]
