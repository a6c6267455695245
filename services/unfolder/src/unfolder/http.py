from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from core_http.client import send
from core_http.headers import transaction_headers
from core_logging import get_logger, record_error
from core_logging.error_codes import ErrorCode
from .errors import GatewayError

_logger = get_logger("unfolder.http")


async def call_upstream(
    gateway: str,
    method: str,
    url: str,
    *,
    transaction_id: str,
    client: httpx.AsyncClient | None = None,
    content: bytes | None = None,
    params: Any | None = None,
    headers: Optional[Dict[str, str]] = None,
) -> httpx.Response:
    """
    One bounded call on behalf of *gateway* (also the timeout stage name).
    Timeouts, transport failures and unbuildable URLs surface as
    ``GatewayError``; the response is returned whatever its status.
    """
    try:
        return await send(
            method, url,
            content=content, params=params,
            headers=transaction_headers(transaction_id, headers),
            stage=gateway, client=client, request_id=transaction_id,
        )
    except httpx.TimeoutException as exc:
        record_error(
            ErrorCode.upstream_timeout.value, where=gateway, logger=_logger,
            message=f"{method.upper()} {url} timed out", request_id=transaction_id,
        )
        raise GatewayError(
            f"call to {gateway} timed out", gateway=gateway, code=ErrorCode.upstream_timeout,
        ) from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        record_error(
            ErrorCode.upstream_error.value, where=gateway, logger=_logger,
            message=f"{method.upper()} {url} failed: {exc.__class__.__name__}: {exc}",
            request_id=transaction_id,
        )
        raise GatewayError(f"error calling {gateway}: {exc}", gateway=gateway) from exc


def status_error(gateway: str, resp: httpx.Response, *, transaction_id: str) -> GatewayError:
    """GatewayError for an unexpected upstream status (logged once here)."""
    body = resp.text[:512] if resp.content else ""
    record_error(
        ErrorCode.upstream_error.value, where=gateway, logger=_logger,
        message=f"{gateway} responded with status {resp.status_code}",
        request_id=transaction_id, status_code=resp.status_code, upstream_body=body,
    )
    return GatewayError(
        f"call to {gateway} responded with status {resp.status_code}: {body}", gateway=gateway,
    )


def decode_error(gateway: str, exc: Exception, *, transaction_id: str) -> GatewayError:
    record_error(
        ErrorCode.upstream_error.value, where=gateway, logger=_logger,
        message=f"undecodable {gateway} response: {exc}", request_id=transaction_id,
    )
    return GatewayError(f"could not decode response from {gateway}: {exc}", gateway=gateway)


__all__ = ["call_upstream", "status_error", "decode_error"]
