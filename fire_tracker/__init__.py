"""Maranhão Fire Tracker: FIRMS hotspot ingestion and municipality reconciliation."""

__version__ = "1.0.0"
