"""
core_utils.fastapi_bootstrap: one-call FastAPI wiring for services.

  • Single place to apply standard instrumentation and error shaping.
  • Health endpoints are attached explicitly by each service (see setup_service).

Environment knobs (all optional):
  PROXY_HEADERS          "0" disables reverse-proxy header handling.
"""
from __future__ import annotations
import os
from fastapi import FastAPI
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from core_observability.fastapi import instrument_app
from core_http.errors import attach_standard_error_handlers

def setup_service(
    app: FastAPI,
    service_name: str,
    *,
    ttfb_label_route: bool = True,
    attach_metrics_endpoint: bool = True,
) -> None:
    """
    Apply standard wiring to `app`:

      • Tracing + request logging (+/metrics) via core_observability.fastapi.instrument_app
      • Canonical error envelopes via core_http.errors.attach_standard_error_handlers
      • Health endpoints: services must attach explicitly, e.g.:
          from core_utils.health import attach_health_routes
          attach_health_routes(app, checks={"writer": ..., "relations": ...})

    This function is idempotent.
    """
    if getattr(app.state, "_service_setup_done", False):
        return
    app.state._service_setup_done = True

    instrument_app(app, service_name, ttfb_label_route=ttfb_label_route, attach_metrics_endpoint=attach_metrics_endpoint)
    attach_standard_error_handlers(app, service=service_name)

    # Honor reverse-proxy headers (scheme/host/port) when enabled
    if os.getenv("PROXY_HEADERS", "1").lower() in ("1", "true", "yes"):
        app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

__all__ = ["setup_service"]
