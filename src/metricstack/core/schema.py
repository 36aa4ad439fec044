"""
Schema validation for telemetry envelopes.

Validate-then-sanitize: the payload is checked against the envelope models
(compiled once at import) and, on success, re-serialized with unknown
properties dropped. The input dict is never mutated.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from ..models.envelope import TelemetryEnvelope

logger = structlog.get_logger(__name__)


@dataclass
class Violation:
    """A single field-level violation."""
    path: str
    rule: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "rule": self.rule, "message": self.message}


@dataclass
class ValidationResult:
    """Outcome of validating one envelope."""
    violations: List[Violation] = field(default_factory=list)
    envelope: Optional[TelemetryEnvelope] = None

    @property
    def is_valid(self) -> bool:
        return self.envelope is not None and not self.violations

    @property
    def document(self) -> Dict[str, Any]:
        """Sanitized document ready for enrichment."""
        if self.envelope is None:
            raise ValueError("Invalid envelope has no document")
        return self.envelope.to_document()

    def details(self) -> List[Dict[str, str]]:
        """Caller-facing violation list."""
        return [violation.to_dict() for violation in self.violations]


def format_path(loc: Sequence[Union[str, int]]) -> str:
    """Render a pydantic loc tuple as env.userAgent / trace[0].event."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else part
    return path or "(root)"


def _rule_for(error_type: str) -> str:
    if error_type == "missing":
        return "required"
    if error_type.endswith("_type") or error_type == "value_error":
        return "type"
    return error_type


def _message_for(error: Dict[str, Any]) -> str:
    if error["type"] == "missing":
        return "is required"
    message = str(error.get("msg", "is invalid"))
    # PlainValidator messages arrive prefixed
    return message.replace("Value error, ", "")


def validate_envelope(payload: Dict[str, Any]) -> ValidationResult:
    """
    Check payload against the telemetry contract.

    Violations are ordered as reported by the model and carry only path,
    rule and message; raw input values and schema internals are not echoed.
    """
    try:
        envelope = TelemetryEnvelope.model_validate(payload)
    except ValidationError as e:
        violations = [
            Violation(
                path=format_path(error["loc"]),
                rule=_rule_for(error["type"]),
                message=_message_for(error),
            )
            for error in e.errors(include_url=False, include_input=False)
        ]
        logger.debug(
            "Envelope failed validation",
            violation_count=len(violations),
            paths=[violation.path for violation in violations],
        )
        return ValidationResult(violations=violations)

    return ValidationResult(envelope=envelope)
