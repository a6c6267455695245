"""
core_utils.health – health-check routes for FastAPI services.

Provides attach_health_routes() to wire /healthz, /readyz, /__gtg and the
aggregated /__health document from a mapping of named dependency checks,
and attach_status_routes() for /__ping and /__build-info.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from fastapi import APIRouter, FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse

from core_config.constants import timeout_for_stage
from core_logging import get_logger, log_stage

# A dependency check returns either a bool or (ok, message), possibly awaitable.
CheckResult = Union[bool, Tuple[bool, str]]
HealthCheck = Callable[[], Union[CheckResult, Awaitable[CheckResult]]]
HealthChecks = Mapping[str, HealthCheck]

logger = get_logger("core_utils.health")


@dataclass(frozen=True)
class CheckInfo:
    """Operator-facing description of one dependency check."""
    name: str
    severity: int = 2
    business_impact: str = ""
    technical_summary: str = ""
    panic_guide: str = ""


@dataclass(frozen=True)
class ServiceInfo:
    system_code: str
    name: str
    description: str


async def _run_check(name: str, fn: HealthCheck) -> Dict[str, object]:
    try:
        res = fn()
        if asyncio.iscoroutine(res):
            res = await asyncio.wait_for(res, timeout=timeout_for_stage("health"))
    except asyncio.TimeoutError:
        res = (False, f"{name} check timed out")
    except Exception as exc:  # a failing check must not fail the endpoint itself
        res = (False, f"{name} check raised {exc.__class__.__name__}: {exc}")
    if isinstance(res, tuple):
        ok, message = bool(res[0]), str(res[1])
    else:
        ok, message = bool(res), ("OK" if res else f"{name} check failed")
    if not ok:
        log_stage(logger, "health", "check_failed", check=name, error=message, level="WARNING")
    return {"ok": ok, "message": message}


async def run_checks(checks: HealthChecks) -> Dict[str, Dict[str, object]]:
    """Run every check concurrently; result order follows *checks*."""
    names = list(checks.keys())
    results = await asyncio.gather(*(_run_check(n, checks[n]) for n in names))
    return dict(zip(names, results))


def health_document(
    service: ServiceInfo,
    results: Mapping[str, Mapping[str, object]],
    details: Mapping[str, CheckInfo],
) -> Dict[str, Any]:
    """
    Aggregated health body: service identity, one entry per check with its
    operator metadata, overall ``ok`` and, when unhealthy, the most severe
    (lowest) failing ``severity``.
    """
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    checks: List[Dict[str, Any]] = []
    for check_id, res in results.items():
        info = details.get(check_id) or CheckInfo(name=check_id)
        checks.append({
            "id": check_id,
            "name": info.name,
            "ok": res["ok"],
            "severity": info.severity,
            "businessImpact": info.business_impact,
            "technicalSummary": info.technical_summary,
            "panicGuide": info.panic_guide,
            "checkOutput": res["message"],
            "lastUpdated": now,
        })
    doc: Dict[str, Any] = {
        "schemaVersion": 1,
        "systemCode": service.system_code,
        "name": service.name,
        "description": service.description,
        "checks": checks,
        "ok": all(c["ok"] for c in checks),
    }
    failing = [c["severity"] for c in checks if not c["ok"]]
    if failing:
        doc["severity"] = min(failing)
    return doc


def attach_health_routes(
    app: FastAPI,
    *,
    checks: HealthChecks,
    service: Optional[ServiceInfo] = None,
    details: Optional[Mapping[str, CheckInfo]] = None,
) -> None:
    """
    Register health-check endpoints on the app.

    Endpoints:
        GET /healthz -> {"status": "ok"} (liveness; never touches dependencies)
        GET /readyz  -> {"status": "ready"|"degraded", "ready": bool,
                         "checks": {name: {"ok": bool, "message": str}}}
                        503 when any check fails.
        GET /__gtg   -> 200 "OK" when every check passes, otherwise 503 with
                        the first failure message.
        GET /__health -> health_document(); always 200, only when *service*
                        is given.
    """
    router = APIRouter()

    @router.get("/healthz")
    async def _healthz():
        return {"status": "ok"}

    @router.get("/readyz")
    async def _readyz():
        results = await run_checks(checks)
        ready = all(r["ok"] for r in results.values())
        body = {"status": "ready" if ready else "degraded", "ready": ready, "checks": results}
        return JSONResponse(status_code=200 if ready else 503, content=body)

    @router.get("/__gtg")
    async def _gtg():
        results = await run_checks(checks)
        for r in results.values():
            if not r["ok"]:
                return PlainTextResponse(str(r["message"]), status_code=503)
        return PlainTextResponse("OK", status_code=200)

    if service is not None:
        @router.get("/__health")
        async def _health():
            results = await run_checks(checks)
            return JSONResponse(content=health_document(service, results, details or {}))

    app.include_router(router)


def attach_status_routes(app: FastAPI, *, build_info: Mapping[str, str]) -> None:
    """
    GET /__ping, /ping             -> "pong"
    GET /__build-info, /build-info -> *build_info* as JSON
    """
    router = APIRouter()
    info = dict(build_info)

    async def _ping():
        return PlainTextResponse("pong")

    async def _build_info():
        return JSONResponse(content=info)

    for path in ("/__ping", "/ping"):
        router.add_api_route(path, _ping, methods=["GET"], include_in_schema=False)
    for path in ("/__build-info", "/build-info"):
        router.add_api_route(path, _build_info, methods=["GET"], include_in_schema=False)
    app.include_router(router)

__all__ = [
    "attach_health_routes", "attach_status_routes", "health_document", "run_checks",
    "CheckInfo", "ServiceInfo", "HealthCheck", "HealthChecks",
]
