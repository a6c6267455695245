from __future__ import annotations

from urllib.parse import quote

import httpx

from core_logging import get_logger, log_stage
from .http import call_upstream
from .models import WriterResponse

logger = get_logger("unfolder.writer")

GATEWAY = "writer"


class WriteGateway:
    """Persists the collection body; the returned status gates all notification work."""

    def __init__(self, writer_uri: str, *, client: httpx.AsyncClient | None = None) -> None:
        self._base = writer_uri.rstrip("/")
        self._client = client

    def url_for(self, collection_type: str, collection_uuid: str) -> str:
        # path segments are caller-controlled
        return f"{self._base}/{quote(collection_type, safe='')}/{quote(collection_uuid, safe='')}"

    async def write(
        self,
        collection_type: str,
        collection_uuid: str,
        raw_body: bytes,
        transaction_id: str,
    ) -> WriterResponse:
        """
        PUT the inbound body unchanged. Any HTTP status is returned to the
        caller; only transport failures raise ``GatewayError``.
        """
        resp = await call_upstream(
            GATEWAY, "PUT", self.url_for(collection_type, collection_uuid),
            transaction_id=transaction_id, client=self._client,
            content=raw_body, headers={"Content-Type": "application/json"},
        )
        log_stage(logger, GATEWAY, "writer_responded",
                  request_id=transaction_id, collection_uuid=collection_uuid,
                  collection_type=collection_type, writer_status=resp.status_code)
        return WriterResponse(
            status=resp.status_code,
            body=resp.content,
            content_type=resp.headers.get("content-type"),
        )


__all__ = ["WriteGateway"]
