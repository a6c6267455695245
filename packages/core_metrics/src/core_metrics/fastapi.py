from __future__ import annotations
from fastapi import FastAPI, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

def attach_prometheus_endpoint(app: FastAPI, path: str = "/metrics") -> None:
    """
    Attach a Prometheus scrape endpoint to *app* at *path* (default: "/metrics").
    Safe to call multiple times; subsequent calls are no-ops because the route
    is registered under a stable name.
    """
    route_name = f"core_metrics:{path}"
    for r in app.router.routes:
        if getattr(r, "name", None) == route_name:
            return

    @app.get(path, include_in_schema=False, name=route_name)
    def _metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
