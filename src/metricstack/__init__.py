"""
MetricStack - Client Telemetry Ingestor

A FastAPI-based service that accepts client telemetry envelopes (plain JSON
or obfuscated tokens), validates and enriches them, and appends them to a
document store. Also serves obfuscated configuration blobs to clients.
"""

__version__ = "0.1.0"

from .main import app

__all__ = ["app"]
