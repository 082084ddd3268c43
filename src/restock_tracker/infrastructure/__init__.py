"""Clients for the external event store and commerce system."""
