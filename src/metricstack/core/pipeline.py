"""
Telemetry ingestion pipeline.

Orchestrates, terminal on first failure:
1. Admission check (per-source fixed window)
2. Body resolution (raw JSON passthrough or codec decode)
3. JSON parse and shape check
4. Schema validation and sanitizing
5. Enrichment with server-observed metadata
6. Store hand-off (no-op in degraded mode)
7. Acknowledgment
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from .codec import CodecError, decode, loads_json
from .enrichment import enrich
from .exceptions import (
    DecodeError,
    InternalError,
    InvalidPayloadError,
    MetricStackException,
    PayloadParseError,
    SchemaValidationError,
    StoreError,
)
from .limiter import AdmissionLimiter, now_ms
from .metrics import MetricsCollector
from .schema import validate_envelope
from .store import DocumentStore

logger = structlog.get_logger(__name__)


@dataclass
class IngestionResult:
    """Result of ingesting one envelope."""
    document: Dict[str, Any]
    stored: bool
    received_at: int
    processing_time_ms: float


class IngestionPipeline:
    """
    Main processing pipeline for telemetry ingestion.

    The limiter and store are injected; a missing store puts the pipeline in
    degraded mode where accepted envelopes are acknowledged and discarded.
    """

    def __init__(
        self,
        limiter: AdmissionLimiter,
        store: Optional[DocumentStore] = None,
        collection: str = "telemetry",
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.limiter = limiter
        self.store = store
        self.collection = collection
        self.metrics = metrics
        logger.info(
            "Ingestion pipeline initialized",
            has_store=store is not None,
            collection=collection,
            has_metrics=metrics is not None,
        )

    async def ingest(
        self,
        body: Any,
        version_token: Optional[str],
        client_identity: str,
        request_id: Optional[str] = None,
    ) -> IngestionResult:
        """
        Run one request body through the pipeline.

        ``body`` is either an already-parsed JSON value or text to be decoded
        with ``version_token`` as the key.

        Raises:
            MetricStackException: the subclass names the failed stage.
        """
        received_at = now_ms()
        start = time.perf_counter()

        try:
            result = await self._run(body, version_token, client_identity, received_at, request_id)
        except MetricStackException as e:
            if self.metrics:
                self.metrics.record_rejection(e.error_code)
            raise
        except Exception as e:
            logger.error(
                "Unexpected failure in ingestion pipeline",
                request_id=request_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            if self.metrics:
                self.metrics.record_rejection("server_error")
            raise InternalError() from e

        result.processing_time_ms = (time.perf_counter() - start) * 1000
        return result

    async def _run(
        self,
        body: Any,
        version_token: Optional[str],
        client_identity: str,
        received_at: int,
        request_id: Optional[str],
    ) -> IngestionResult:
        # Step 1: Admission
        await self.limiter.check(client_identity)

        # Step 2-3: Resolve and parse body
        payload = self.resolve_payload(body, version_token)
        if not isinstance(payload, dict):
            logger.info("Rejected non-object payload", request_id=request_id, payload_type=type(payload).__name__)
            raise InvalidPayloadError()

        # Step 4: Validate and sanitize
        validation = validate_envelope(payload)
        if not validation.is_valid:
            logger.info(
                "Rejected envelope with schema violations",
                request_id=request_id,
                client_identity=client_identity,
                violation_count=len(validation.violations),
            )
            raise SchemaValidationError(validation.details())

        # Step 5: Enrich
        document = enrich(
            validation.document,
            received_at=received_at,
            client_version=version_token,
            client_identity=client_identity,
        )

        # Step 6: Persist
        stored = await self._persist(document, request_id)

        logger.info(
            "Envelope accepted",
            request_id=request_id,
            client_identity=client_identity,
            stored=stored,
            trace_events=len(document.get("trace") or []),
            pings=len(document.get("pings") or []),
        )

        return IngestionResult(
            document=document,
            stored=stored,
            received_at=received_at,
            processing_time_ms=0.0,
        )

    def resolve_payload(self, body: Any, version_token: Optional[str]) -> Any:
        """
        Turn a request body into a JSON value.

        Parsed bodies pass through. Text bodies are decoded with the caller's
        version token as key (plain base64 when it is absent), then parsed.
        """
        if not isinstance(body, str):
            return body

        try:
            plaintext = decode(body, version_token or None)
        except CodecError as e:
            logger.info("Cannot decode text payload", error=str(e), keyed=bool(version_token))
            raise DecodeError() from e

        try:
            return loads_json(plaintext)
        except ValueError as e:
            logger.info("Decoded payload is not JSON", error=str(e))
            raise PayloadParseError() from e

    async def _persist(self, document: Dict[str, Any], request_id: Optional[str]) -> bool:
        if self.store is None:
            logger.warning("No document store configured - telemetry dropped", request_id=request_id)
            if self.metrics:
                self.metrics.record_accepted(collection=None)
            return False

        write_start = time.perf_counter()
        try:
            await self.store.insert(self.collection, document)
        except Exception as e:
            logger.error(
                "Document store write failed",
                request_id=request_id,
                collection=self.collection,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise StoreError() from e

        if self.metrics:
            self.metrics.record_accepted(
                collection=self.collection,
                duration_seconds=time.perf_counter() - write_start,
            )
        return True
