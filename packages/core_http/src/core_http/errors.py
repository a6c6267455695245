from __future__ import annotations
from typing import Any, Dict
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse
from core_logging import get_logger, log_stage, record_error, current_request_id
from core_utils.ids import generate_transaction_id
from core_utils import jsonx
from core_logging.error_codes import ErrorCode  # reuse codes; do not duplicate

def error_envelope(
    code: ErrorCode | str,
    message: str,
    request_id: str | None,
    *,
    details: object | None = None,
) -> Dict[str, Any]:
    """
    Canonical error body shared by every non-success response:
    ``{"message", "error": {"code", "message", "request_id"}, "request_id"}``.
    """
    payload: Dict[str, Any] = {
        "message": message,
        "error": {
            "code": code.value if isinstance(code, ErrorCode) else str(code),
            "message": message,
            "request_id": request_id,
        },
        "request_id": request_id,
    }
    if details is not None:
        payload["error"]["details"] = jsonx.sanitize(details)
    return payload

def _request_id_for(request: Request) -> str:
    return (
        getattr(request.state, "transaction_id", None)
        or current_request_id()
        or generate_transaction_id()
    )

def attach_standard_error_handlers(app: FastAPI, *, service: str) -> None:
    """
    Uniform error shaping:
      - 422: request validation
      - Starlette HTTP errors (envelope passthrough when detail is already one)
      - 500: catch-all with {code, message, details, request_id}
    """
    logger = get_logger(service)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc_handler(request: Request, exc: RequestValidationError):
        req_id = _request_id_for(request)
        log_stage(logger, "validation", "failed",
                  request_id=req_id, errors=jsonx.sanitize(exc.errors()),
                  url=str(request.url), method=request.method, level="WARNING")
        return JSONResponse(
            status_code=422,
            content=error_envelope(
                ErrorCode.validation_failed, "Request validation failed", req_id,
                details={"errors": exc.errors()},
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content=exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(
                ErrorCode.internal if exc.status_code >= 500 else ErrorCode.validation_failed,
                str(exc.detail), _request_id_for(request),
            ),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        req_id = _request_id_for(request)
        record_error(
            ErrorCode.internal.value, where="request", message=str(exc), logger=logger,
            request_id=req_id, error_type=exc.__class__.__name__,
        )
        return JSONResponse(
            status_code=500,
            content=error_envelope(
                ErrorCode.internal, "Unexpected error", req_id,
                details={"type": exc.__class__.__name__, "message": str(exc)},
            ),
        )

__all__ = ["error_envelope", "attach_standard_error_handlers"]
