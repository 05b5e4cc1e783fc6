"""Prometheus scrape endpoint for ASGI applications."""

__version__ = "0.1.0"
