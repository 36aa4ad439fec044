"""
Telemetry envelope data models.

- Required fields: timestamp (integer epoch ms), env.userAgent
- Optional fields are type checked when present; env extras are nullable
- Unknown properties are ignored and never reach the store; meta and
  trace[].data are free-form
"""

import math
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainValidator, StrictBool, StrictInt, StrictStr, model_validator
from pydantic.alias_generators import to_camel


def _check_number(value: Any) -> Union[int, float]:
    """JSON number: finite int or float, never bool or numeric string."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("must be number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("must be a finite number")
    return value


Number = Annotated[Union[int, float], PlainValidator(_check_number)]


class EnvelopeModel(BaseModel):
    """Base for envelope parts: camelCase on the wire only, unknown keys dropped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="ignore",
    )


class ClientEnvironment(EnvelopeModel):
    """Client runtime facts reported by the sender."""

    user_agent: StrictStr
    language: Optional[StrictStr] = None
    online: Optional[StrictBool] = None

    # Network quality
    downlink: Optional[Number] = None
    effective_type: Optional[StrictStr] = None
    rtt: Optional[Number] = None
    save_data: Optional[StrictBool] = None
    type: Optional[StrictStr] = None

    # Locale
    timezone: Optional[StrictStr] = None
    locale: Optional[StrictStr] = None
    offset_minutes: Optional[StrictInt] = None

    # Page
    href: Optional[StrictStr] = None
    referrer: Optional[StrictStr] = None


class TraceEvent(EnvelopeModel):
    """A named client-side event."""

    event: StrictStr
    timestamp: StrictInt
    # Optional but not nullable: the default is never validated, an explicit null is
    data: Dict[str, Any] = None  # type: ignore[assignment]


class PingResult(EnvelopeModel):
    """Result of one network probe."""

    url: StrictStr
    duration: Number
    site: Optional[StrictStr] = None
    start: Optional[StrictInt] = None
    timeout: StrictBool = None  # type: ignore[assignment]
    error: StrictBool = None  # type: ignore[assignment]


class TelemetryEnvelope(EnvelopeModel):
    """
    One telemetry submission.

    Server-added fields (receivedAt, clientV, meta.clientIp) are not part of
    the inbound contract; enrichment sets them after validation.
    """

    # Optional fields below are not nullable, except meta; see TraceEvent.data
    id: StrictStr = None  # type: ignore[assignment]
    timestamp: StrictInt = Field(description="Client epoch milliseconds")
    env: ClientEnvironment
    trace: List[TraceEvent] = None  # type: ignore[assignment]
    pings: List[PingResult] = None  # type: ignore[assignment]
    meta: Dict[str, Any] = None  # type: ignore[assignment]

    @model_validator(mode="before")
    @classmethod
    def drop_null_meta(cls, data: Any) -> Any:
        """A null meta is treated as absent; enrichment creates it."""
        if isinstance(data, dict) and "meta" in data and data["meta"] is None:
            return {key: value for key, value in data.items() if key != "meta"}
        return data

    def to_document(self) -> Dict[str, Any]:
        """Sanitized wire-shaped dict: known fields only, absent stays absent."""
        return self.model_dump(by_alias=True, exclude_unset=True)
