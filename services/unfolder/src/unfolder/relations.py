from __future__ import annotations

import httpx
import pydantic

from core_logging import get_logger, log_stage
from .http import call_upstream, decode_error, status_error
from .models import CollectionRelations

logger = get_logger("unfolder.relations")

GATEWAY = "relations"


class RelationsGateway:
    """
    Looks up the previously recorded membership and parent of a collection.
    *uri_template* contains a ``{uuid}`` placeholder for the collection UUID.
    """

    def __init__(self, uri_template: str, *, client: httpx.AsyncClient | None = None) -> None:
        self._uri_template = uri_template
        self._client = client

    def url_for(self, collection_uuid: str) -> str:
        return self._uri_template.replace("{uuid}", collection_uuid)

    async def get_relations(self, collection_uuid: str, transaction_id: str) -> CollectionRelations:
        """
        404 means the collection is new: empty relations. Any other non-200
        status, transport failure or undecodable body raises ``GatewayError``.
        """
        resp = await call_upstream(
            GATEWAY, "GET", self.url_for(collection_uuid),
            transaction_id=transaction_id, client=self._client,
        )
        if resp.status_code == 404:
            log_stage(logger, GATEWAY, "relations_not_found",
                      request_id=transaction_id, collection_uuid=collection_uuid)
            return CollectionRelations()
        if resp.status_code != 200:
            raise status_error(GATEWAY, resp, transaction_id=transaction_id)
        try:
            relations = CollectionRelations.model_validate_json(resp.content)
        except pydantic.ValidationError as exc:
            raise decode_error(GATEWAY, exc, transaction_id=transaction_id) from exc
        log_stage(logger, GATEWAY, "relations_resolved",
                  request_id=transaction_id, collection_uuid=collection_uuid,
                  previous_count=len(relations.contains), parent=relations.parent or None)
        return relations


__all__ = ["RelationsGateway"]
