from __future__ import annotations

from typing import Dict, Iterable, List

import httpx

from core_logging import get_logger, log_stage
from core_utils import jsonx
from core_utils.ids import is_uuid
from .http import call_upstream, decode_error, status_error
from .models import ContentRecord

logger = get_logger("unfolder.content")

GATEWAY = "content"


class ContentExpander:
    """
    Resolves UUIDs into full content records with a single
    ``GET <uri>?uuid=<a>&uuid=<b>...`` returning a JSON array.
    """

    def __init__(self, content_uri: str, *, client: httpx.AsyncClient | None = None) -> None:
        self._uri = content_uri
        self._client = client

    async def resolve(self, uuids: Iterable[str], transaction_id: str) -> Dict[str, ContentRecord]:
        """
        Return records keyed by their lower-cased ``uuid``. UUIDs the store
        does not know are simply absent from the result. An empty request
        makes no call.
        """
        wanted: List[str] = list(dict.fromkeys(uuids))
        if not wanted:
            return {}
        resp = await call_upstream(
            GATEWAY, "GET", self._uri,
            transaction_id=transaction_id, client=self._client,
            params=[("uuid", u) for u in wanted],
        )
        if resp.status_code != 200:
            raise status_error(GATEWAY, resp, transaction_id=transaction_id)
        try:
            data = jsonx.loads(resp.content)
        except ValueError as exc:
            raise decode_error(GATEWAY, exc, transaction_id=transaction_id) from exc
        if data is None:
            data = []
        if not isinstance(data, list):
            raise decode_error(
                GATEWAY, TypeError(f"expected a JSON array, got {type(data).__name__}"),
                transaction_id=transaction_id,
            )

        records: Dict[str, ContentRecord] = {}
        for item in data:
            uuid = item.get("uuid") if isinstance(item, dict) else None
            if not is_uuid(uuid):
                log_stage(logger, GATEWAY, "skip_record_without_uuid",
                          request_id=transaction_id, record_uuid=uuid, level="WARNING")
                continue
            records[uuid.lower()] = item
        log_stage(logger, GATEWAY, "content_resolved",
                  request_id=transaction_id, requested=len(wanted), resolved=len(records))
        return records


__all__ = ["ContentExpander"]
