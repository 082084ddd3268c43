"""Restock tracker: back-in-stock signup reconciliation service."""

__version__ = "1.0.0"
