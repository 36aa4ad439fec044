"""
Prometheus metrics collection.

In-memory counters exposed for scraping; each collector owns its registry.
"""

import time
from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for MetricStack.

    Keep metrics simple,
    use in-memory counters, let Prometheus handle storage.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()

        # Service info
        self.service_info = Info(
            "metricstack_service",
            "MetricStack service information",
            registry=self.registry,
        )
        self.service_info.info({
            "version": "0.1.0",
            "service": "metricstack",
        })

        # Ingestion metrics
        self.requests_total = Counter(
            "telemetry_requests_total",
            "Total telemetry ingestion requests by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.rejected_total = Counter(
            "telemetry_rejected_total",
            "Total telemetry envelopes rejected",
            ["reason"],
            registry=self.registry,
        )

        self.stored_total = Counter(
            "telemetry_stored_total",
            "Total telemetry envelopes written to the store",
            ["collection"],
            registry=self.registry,
        )

        self.dropped_total = Counter(
            "telemetry_dropped_total",
            "Accepted envelopes discarded because no store is configured",
            registry=self.registry,
        )

        self.store_write_duration = Histogram(
            "store_write_duration_seconds",
            "Document store write duration in seconds",
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
            registry=self.registry,
        )

        # Limiter metrics
        self.rate_limit_identities = Gauge(
            "rate_limit_identities",
            "Source identities currently tracked by the admission limiter",
            registry=self.registry,
        )

        # Config response metrics
        self.config_responses_total = Counter(
            "config_responses_total",
            "Total config responses served",
            ["client_config"],
            registry=self.registry,
        )

        self.uptime_seconds = Gauge(
            "uptime_seconds",
            "Service uptime in seconds",
            registry=self.registry,
        )

        self._start_time = time.time()

    def record_accepted(self, collection: Optional[str], duration_seconds: Optional[float] = None) -> None:
        """Record an acknowledged envelope, stored or dropped."""
        self.requests_total.labels(outcome="accepted").inc()
        if collection is None:
            self.dropped_total.inc()
            return
        self.stored_total.labels(collection=collection).inc()
        if duration_seconds is not None:
            self.store_write_duration.observe(duration_seconds)

    def record_rejection(self, reason: str) -> None:
        """Record a request that ended in an error response."""
        self.requests_total.labels(outcome="rejected").inc()
        self.rejected_total.labels(reason=reason).inc()

    def record_config_response(self, client_config_decoded: bool) -> None:
        self.config_responses_total.labels(
            client_config="decoded" if client_config_decoded else "undecodable"
        ).inc()

    def update_limiter_metrics(self, tracked_identities: int) -> None:
        self.rate_limit_identities.set(tracked_identities)

    def update_system_metrics(self) -> None:
        self.uptime_seconds.set(time.time() - self._start_time)
