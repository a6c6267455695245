import time
from typing import Any, Dict, Optional
import httpx
from urllib.parse import urlsplit
from core_config.constants import timeout_for_stage, HTTP_MAX_CONNECTIONS, HTTP_MAX_KEEPALIVE
from core_observability.otel import inject_trace_context
from core_logging import get_logger, log_stage
from core_logging import current_request_id
from core_http.headers import TRANSACTION_ID_HEADER

# Module-level logger for this package
logger = get_logger("core_http")

_shared_client: httpx.AsyncClient | None = None

def _inject_headers(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Merge caller headers with process context (trace + transaction id).
    Never mutates the input dict.
    """
    base: Dict[str, str] = {}
    try:
        base = inject_trace_context({}) or {}
    except (RuntimeError, ValueError):
        base = {}
    # Propagate the transaction id when bound (ingress responsibility)
    rid = current_request_id()
    if rid and not any(k.lower() == TRANSACTION_ID_HEADER.lower() for k in (headers or {})):
        base[TRANSACTION_ID_HEADER] = rid
    if headers:
        base.update(headers)
    return base

def _build_timeout(seconds: float) -> httpx.Timeout:
    # Separate connect/read/write/pool timeouts; read dominates
    connect = min(seconds, max(0.1, seconds * 0.3))
    read    = max(0.1, seconds)
    write   = max(0.1, seconds)
    pool    = min(seconds, 1.0)
    return httpx.Timeout(connect=connect, read=read, write=write, pool=pool)

def _op(method: str, url: str) -> tuple[str, Dict[str, str]]:
    parts = urlsplit(url)
    http = {
        "method": method.upper(),
        "scheme": parts.scheme or "http",
        "host": parts.hostname or "",
        "target": parts.path or "/",
    }
    return f"{method.upper()} {(parts.hostname or '')}{parts.path or '/'}", http

def get_http_client(*, timeout_ms: Optional[int] = None) -> httpx.AsyncClient:
    """
    Return a process-wide ``httpx.AsyncClient`` with pooled connections.
    The returned client is shared across the process and is closed only by
    ``close_http_client()`` at application shutdown. A closed client is
    replaced on the next call.

    Per-call budgets are applied on each request (see ``send``); ``timeout_ms``
    only sets the client default.
    """
    global _shared_client
    base_sec = (timeout_ms / 1000.0) if timeout_ms is not None else timeout_for_stage("writer")
    if _shared_client is None or getattr(_shared_client, "is_closed", False):
        if _shared_client is not None:
            log_stage(
                logger, "http.client", "recreating_shared_client",
                timeout_sec=base_sec, request_id=(current_request_id() or "startup")
            )
        _shared_client = httpx.AsyncClient(
            timeout=_build_timeout(base_sec),
            limits=httpx.Limits(max_connections=HTTP_MAX_CONNECTIONS, max_keepalive_connections=HTTP_MAX_KEEPALIVE),
        )
    return _shared_client

async def close_http_client() -> None:
    """Close the shared client (application shutdown)."""
    global _shared_client
    if _shared_client is not None and not _shared_client.is_closed:
        await _shared_client.aclose()
    _shared_client = None

async def send(method: str,
               url: str,
               *,
               content: bytes | str | None = None,
               json: Any | None = None,
               params: Any | None = None,
               headers: Optional[Dict[str, str]] = None,
               stage: str = "writer",
               client: httpx.AsyncClient | None = None,
               request_id: str | None = None) -> httpx.Response:
    """
    Issue one request bounded by the stage budget and return the response
    whatever its status. Transport failures and timeouts propagate as
    ``httpx.HTTPError``. No retries.
    """
    http_client = client or get_http_client()
    hdrs = _inject_headers(headers or {})
    op, http = _op(method, url)
    rid = request_id or current_request_id()
    log_stage(
        logger, "http.client", "http.client.request",
        request_id=rid, op=op, http=http, upstream=stage,
    )
    t0 = time.perf_counter()
    resp = await http_client.request(
        method.upper(), url,
        content=content, json=json, params=params, headers=hdrs,
        timeout=_build_timeout(timeout_for_stage(stage)),
    )
    log_stage(
        logger, "http.client", "http.client.response",
        request_id=rid, op=op, upstream=stage,
        http={**http, "status_code": resp.status_code},
        latency_ms=int((time.perf_counter() - t0) * 1000.0),
    )
    return resp
