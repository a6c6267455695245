from .otel import init_tracing, instrument_fastapi_app, inject_trace_context
from .fastapi import instrument_app
__all__ = ["init_tracing", "instrument_fastapi_app", "inject_trace_context", "instrument_app"]
