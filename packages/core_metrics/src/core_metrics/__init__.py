"""
core_metrics – tiny helpers so services can record counters / histograms
without taking a hard dependency on the OpenTelemetry API.  When OTEL isn’t
configured we silently degrade to Prometheus only, which keeps unit-tests and
local dev friction-free.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, TYPE_CHECKING, cast

from prometheus_client import (
    REGISTRY as _PROM_REGISTRY,
    Counter as _pCounter,
    Histogram as _pHistogram,
)

if TYPE_CHECKING:
    from prometheus_client import Counter as PromCounter
    from prometheus_client import Histogram as PromHistogram

_P_COUNTERS: Dict[str, "PromCounter"] = {}
_P_HISTOS: Dict[str, "PromHistogram"] = {}

# ── OpenTelemetry meter (preferred when the SDK is configured) ─────────────
try:
    from opentelemetry import metrics as _otel_metrics  # type: ignore
    import os as _os
    _svc = _os.getenv("OTEL_SERVICE_NAME") or _os.getenv("SERVICE_NAME") or "unfolder"
    _METER = _otel_metrics.get_meter(f"{_svc}.core_metrics", version="0.1.0")
except ImportError:  # pragma: no cover – OTEL missing
    _METER = None  # type: ignore[assignment]

_COUNTERS: Dict[str, Any] = {}
_HISTOS: Dict[str, Any] = {}
_LOCK = threading.Lock()

def _existing(name: str) -> Any:
    return _PROM_REGISTRY._names_to_collectors.get(name)  # type: ignore[attr-defined]

# --------------------------------------------------------------------------- #
# Public helpers                                                              #
# --------------------------------------------------------------------------- #
def counter(name: str, inc: int | float = 1, **attrs: Any) -> None:
    """
    Increment *name* by *inc* (default 1).

    Writes to OTEL (if available) **and** to the in-process Prometheus
    registry so the metric shows up at `/metrics` even when OTEL is disabled.
    Attributes are forwarded to OTEL only; the Prometheus series is unlabelled.
    """
    if _METER is not None:
        with _LOCK:
            c = _COUNTERS.get(name) or _METER.create_counter(name)
            _COUNTERS[name] = c
        c.add(inc, attributes=attrs or {})

    with _LOCK:
        pc = _P_COUNTERS.get(name)
        if pc is None:
            existing = _existing(name)
            pc = cast("PromCounter", existing) if existing is not None else _pCounter(name, f"Counter for {name}")
            _P_COUNTERS[name] = pc
    pc.inc(inc)


def histogram(name: str, value: float, **attrs: Any) -> None:
    """
    Record *value* in histogram *name*.
    """
    if _METER is not None:
        with _LOCK:
            h = _HISTOS.get(name) or _METER.create_histogram(name)
            _HISTOS[name] = h
        h.record(value, attributes=attrs or {})

    with _LOCK:
        ph = _P_HISTOS.get(name)
        if ph is None:
            existing = _existing(name)
            ph = cast("PromHistogram", existing) if existing is not None else _pHistogram(name, f"Histogram for {name}")
            _P_HISTOS[name] = ph
    ph.observe(value)


__all__ = ["counter", "histogram"]
