from __future__ import annotations
import os
from .otel import instrument_fastapi_app
from core_logging.request_logging import attach_request_logging
from core_metrics.fastapi import attach_prometheus_endpoint

def instrument_app(
    app,
    service_name: str | None = None,
    *,
    ttfb_label_route: bool = True,
    attach_metrics_endpoint: bool = True,
) -> None:
    """
    One-call, idempotent FastAPI instrumentation:
      • sets up the OTEL tracer and server-span middleware,
      • installs structured request logging with consistent metric prefixes,
      • exposes Prometheus /metrics.
    """
    svc = service_name or os.getenv("OTEL_SERVICE_NAME") or os.getenv("SERVICE_NAME") or "unfolder"
    # Request logging first so the server span middleware (added last) wraps it
    attach_request_logging(app, service=svc, metric_prefix=svc, ttfb_label_route=ttfb_label_route)
    instrument_fastapi_app(app, service_name=svc)
    if attach_metrics_endpoint:
        attach_prometheus_endpoint(app)
