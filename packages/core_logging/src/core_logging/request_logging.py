from __future__ import annotations
import time
from typing import Tuple
from fastapi import FastAPI, Request
from core_logging import (
    get_logger, log_stage, bind_request_id, current_trace_ids,
    emit_request_summary, emit_request_error_summary, reset_request_aggregate,
)
from core_http.headers import TRANSACTION_ID_HEADER
from core_utils.ids import generate_transaction_id
import core_metrics

_DEFAULT_SUPPRESS: Tuple[str, ...] = (
    "/healthz", "/readyz", "/__gtg", "/__health", "/__ping", "/ping", "/__build-info", "/build-info", "/metrics",
)

def attach_request_logging(
    app: FastAPI,
    *,
    service: str,
    metric_prefix: str,
    ttfb_label_route: bool = False,
    suppress_paths: Tuple[str, ...] = _DEFAULT_SUPPRESS,
) -> None:
    """
    Install a uniform request logger middleware with health/metrics filtering.
    Emits:
      - {metric_prefix}_ttfb_seconds (histogram)
      - {metric_prefix}_http_requests_total (counter{method,code})
      - {metric_prefix}_http_5xx_total (counter)
    Binds the transaction id (X-Request-Id, generated when absent) for the
    duration of the request and echoes it on the response.
    """
    logger = get_logger(service)

    @app.middleware("http")
    async def _request_logger(request: Request, call_next):
        path = str(request.url.path or "")
        should_log = not any(path.endswith(p) for p in suppress_paths)

        # Preserve incoming transaction id when provided; generate otherwise.
        tid = request.headers.get(TRANSACTION_ID_HEADER) or generate_transaction_id()
        request.state.transaction_id = tid
        reset_request_aggregate()
        bind_request_id(tid)
        t0 = time.perf_counter()
        if should_log:
            log_stage(
                logger, "request", "request_start",
                request_id=tid,
                http={"method": request.method, "target": path},
            )

        try:
            resp = await call_next(request)
        except Exception:
            bind_request_id(None)
            raise

        _tid, _ = current_trace_ids()
        if _tid and "x-trace-id" not in resp.headers:
            resp.headers["x-trace-id"] = _tid
        resp.headers[TRANSACTION_ID_HEADER] = tid

        dt = time.perf_counter() - t0
        if ttfb_label_route:
            _route_obj = request.scope.get("route")
            _route = getattr(_route_obj, "path", None) or path
            core_metrics.histogram(f"{metric_prefix}_ttfb_seconds", dt, route=_route)
        else:
            core_metrics.histogram(f"{metric_prefix}_ttfb_seconds", dt)
        core_metrics.counter(f"{metric_prefix}_http_requests_total", 1, method=request.method, code=str(resp.status_code))
        if str(resp.status_code).startswith("5"):
            core_metrics.counter(f"{metric_prefix}_http_5xx_total", 1)

        if should_log:
            log_stage(
                logger, "request", "request_end",
                request_id=tid,
                status_code=resp.status_code,
                http={"status_code": resp.status_code, "method": request.method, "target": path},
                latency_ms=int(dt * 1000.0),
            )
            # Compact rollups
            emit_request_error_summary(logger, service=service)
            emit_request_summary(logger, service=service)
        bind_request_id(None)
        return resp
