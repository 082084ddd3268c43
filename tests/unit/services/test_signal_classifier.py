"""Unit tests for the restock email classifier."""

import pytest

from restock_tracker.services.signal_classifier import is_restock_message


class TestSubjectPhrases:
    """Subject lines use the broad phrase set."""

    @pytest.mark.parametrize(
        "subject",
        [
            "Good news: it's back in stock!",
            "It's here",
            "Ready to order?",
            "The Widget is now available",
            "Widget restocked",
            "Pre-order the Widget today",
            "Preorder now",
            "BACK IN STOCK",
        ],
    )
    def test_matches(self, subject: str) -> None:
        assert is_restock_message(subject, None)

    def test_unrelated_subject(self) -> None:
        assert not is_restock_message("Your order has shipped", "Track your package")

    def test_curly_and_straight_quotes_equivalent(self) -> None:
        assert is_restock_message("It’s here!", "") == is_restock_message("It's here!", "")
        assert is_restock_message("It’s here!", "")


class TestPreviewPhrases:
    """Preview text uses the narrower phrase set."""

    def test_preview_match(self) -> None:
        assert is_restock_message("A note from us", "Your favourite is back in stock")

    def test_subject_only_phrase_ignored_in_preview(self) -> None:
        assert not is_restock_message("A note from us", "It's here, ready to order")

    def test_missing_inputs(self) -> None:
        assert not is_restock_message(None, None)
