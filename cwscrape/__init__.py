"""Metric discovery, resource association and batched metric-data retrieval."""

__version__ = "0.1.0"