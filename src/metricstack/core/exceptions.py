"""
Custom exceptions for MetricStack service.

Provides structured error handling with appropriate HTTP status codes
and stable, machine-readable error codes for API responses.
"""

from typing import Any, Dict, List, Optional


class MetricStackException(Exception):
    """Base exception for MetricStack service."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "server_error",
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.details = details

    def to_content(self) -> Dict[str, Any]:
        """Caller-facing JSON body. Only the code and structured details."""
        content: Dict[str, Any] = {"error": self.error_code}
        if self.details is not None:
            content["details"] = self.details
        return content


class RateLimitError(MetricStackException):
    """Raised when a source identity exceeds its admission window."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=429,
            error_code="rate_limited",
        )
        self.retry_after = retry_after


class DecodeError(MetricStackException):
    """Raised when a text body cannot be recovered by the codec."""

    def __init__(self, message: str = "Cannot decode payload") -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="cannot_decode_payload",
        )


class PayloadParseError(MetricStackException):
    """Raised when decoded text is not valid JSON."""

    def __init__(self, message: str = "Invalid JSON after decode") -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="invalid_json_after_decode",
        )


class InvalidPayloadError(MetricStackException):
    """Raised when the payload is not a JSON object."""

    def __init__(self, message: str = "Payload must be a JSON object") -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="invalid_payload",
        )


class SchemaValidationError(MetricStackException):
    """Raised when the envelope violates the telemetry schema."""

    def __init__(self, violations: List[Dict[str, Any]], message: str = "Schema validation failed") -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="invalid_schema",
            details=violations,
        )


class StoreError(MetricStackException):
    """Raised when the document store rejects or fails a write."""

    def __init__(self, message: str = "Document store write failed") -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="server_error",
        )


class InternalError(MetricStackException):
    """Raised for unexpected faults while handling a request."""

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="server_error",
        )
