"""Gratitude journal backend service and optimistic client core."""

__version__ = "0.1.0"
