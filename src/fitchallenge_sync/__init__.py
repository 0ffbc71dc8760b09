"""Offline-resilient, idempotent activity sync for fitness challenges."""

__version__ = "0.3.0"
