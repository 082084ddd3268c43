"""Keyword heuristics that spot restock notifications among received emails.

Subject lines are matched against a broad phrase set and preview text against
a narrower one. Matching is plain substring containment, so an unrelated email
that happens to say "in stock" counts as a restock notification. That false
positive rate is accepted, and the phrase sets are kept as they are.
"""

from restock_tracker.services.normalization import normalize_quotes
from shared.constants import PREVIEW_RESTOCK_PHRASES, SUBJECT_RESTOCK_PHRASES


def _prepare(text: str | None) -> str:
    return normalize_quotes((text or "").lower())


def is_restock_message(subject: str | None, preview_text: str | None) -> bool:
    """Return True if a received email looks like a back-in-stock notification."""
    subject = _prepare(subject)
    preview = _prepare(preview_text)
    return any(phrase in subject for phrase in SUBJECT_RESTOCK_PHRASES) or any(
        phrase in preview for phrase in PREVIEW_RESTOCK_PHRASES
    )
