"""
Pydantic data models package.

Contains data validation models for:
- Telemetry envelopes (inbound contract)
- API responses
"""

from .envelope import ClientEnvironment, PingResult, TelemetryEnvelope, TraceEvent
from .responses import AcceptedResponse, ErrorResponse, SchemaViolation

__all__ = [
    # Envelope models
    "TelemetryEnvelope",
    "ClientEnvironment",
    "TraceEvent",
    "PingResult",

    # Response models
    "AcceptedResponse",
    "ErrorResponse",
    "SchemaViolation",
]
