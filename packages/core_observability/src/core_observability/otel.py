import os
import re
from typing import Dict, Optional

from core_logging import bind_trace_ids, current_trace_ids, get_logger, log_stage

_tracing_setup_done: bool = False

def init_tracing(service_name: Optional[str] = None) -> bool:
    """
    Idempotent OTEL bootstrap. Honors OTEL_* env vars; exports spans only when
    OTEL_EXPORTER_OTLP_ENDPOINT is set. Returns True when an SDK provider is installed.
    """
    global _tracing_setup_done
    if _tracing_setup_done:
        return True
    try:
        from opentelemetry import trace as _trace  # type: ignore
        from opentelemetry.sdk.resources import Resource  # type: ignore
        from opentelemetry.sdk.trace import TracerProvider  # type: ignore
        from opentelemetry.sdk.trace.sampling import ParentBased, AlwaysOnSampler  # type: ignore
    except ImportError:
        # Optional dependency not installed – no-op initialization
        return False

    svc = service_name or os.getenv("OTEL_SERVICE_NAME") or os.getenv("SERVICE_NAME") or "unfolder"
    tp = TracerProvider(resource=Resource.create({"service.name": svc}), sampler=ParentBased(AlwaysOnSampler()))

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        from opentelemetry.sdk.trace.export import BatchSpanProcessor  # type: ignore
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter  # type: ignore
        tp.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint.rstrip("/") + "/v1/traces")))

    # Install the provider so spans have real, non-zero IDs
    _trace.set_tracer_provider(tp)
    _tracing_setup_done = True
    return True

_TRACEPARENT_RE = re.compile(r"^\s*[0-9a-f]{2}-([0-9a-f]{32})-([0-9a-f]{16})-[0-9a-f]{2}\s*$", re.I)

def _parse_traceparent(val: Optional[str]) -> Optional[tuple[str, str]]:
    if not val:
        return None
    m = _TRACEPARENT_RE.match(val)
    return (m.group(1).lower(), m.group(2).lower()) if m else None

def instrument_fastapi_app(app, service_name: Optional[str] = None) -> None:
    """
    Adds an HTTP middleware that starts a server span for each request and
    binds its ids into the logging context.
    Idempotent: avoids double-installing middleware in tests/reloads.
    """
    if getattr(app, "_otel_server_span_installed", False):
        return
    setattr(app, "_otel_server_span_installed", True)
    otel_present = init_tracing(service_name)
    log_stage(
        get_logger(service_name or "unfolder"),
        "observability", "tracing_setup",
        otel_present=otel_present,
        exporter=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or "",
        request_id="startup",
    )
    try:
        from opentelemetry import trace as _trace  # type: ignore
        from opentelemetry.propagate import extract  # type: ignore
    except ImportError:
        _trace = None  # type: ignore

    @app.middleware("http")
    async def _otel_server_span(request, call_next):
        upstream = _parse_traceparent(request.headers.get("traceparent"))
        if upstream:
            bind_trace_ids(*upstream)
        if _trace is None:
            try:
                return await call_next(request)
            finally:
                bind_trace_ids(None, None)
        tracer = _trace.get_tracer(service_name or "unfolder")
        name = f"HTTP {request.method} {request.url.path}"
        with tracer.start_as_current_span(name, context=extract(dict(request.headers))) as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.route", request.url.path)
            ctx = span.get_span_context()
            if getattr(ctx, "trace_id", 0):
                bind_trace_ids(f"{ctx.trace_id:032x}", f"{ctx.span_id:016x}")
            try:
                return await call_next(request)
            finally:
                bind_trace_ids(None, None)

def inject_trace_context(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Build outbound headers carrying W3C trace context.
    Any caller-supplied `traceparent`/`tracestate` is dropped and re-derived
    from the active span (or from the bound logging context).
    """
    hdrs: Dict[str, str] = {k: v for k, v in (headers or {}).items() if k.lower() not in ("traceparent", "tracestate")}
    try:
        from opentelemetry.propagate import inject  # type: ignore
        inject(hdrs)
    except ImportError:
        pass
    if not any(k.lower() == "traceparent" for k in hdrs):
        tid, sid = current_trace_ids()
        if tid and sid:
            hdrs["traceparent"] = f"00-{tid}-{sid}-01"
    return hdrs
