"""
API endpoints package.

Contains FastAPI routers for all service endpoints:
- /api/metrics - Telemetry ingestion (POST) and client config (GET)
- /metrics - Prometheus metrics
- /healthz, /readyz - Health checks
"""
from .healthz import router as healthz_router
from .metrics import router as metrics_router
from .telemetry import router as telemetry_router

__all__ = ["healthz_router", "metrics_router", "telemetry_router"]
