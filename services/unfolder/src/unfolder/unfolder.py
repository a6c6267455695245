"""
Unfold orchestrator.

Sequence per request::

    extract membership -> relations -> diff -> write -> write-status gate
      -> allow-list gate -> add parent -> empty gate -> resolve content
      -> publish one event per entry

The writer call always precedes any content or publish call, and the
response mirrors the writer's status and body unless the request fails
before or during the write.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable

import core_metrics
from core_http.errors import error_envelope
from core_logging import get_logger, log_stage, record_error
from core_utils import jsonx
from .content import ContentExpander
from .differ import diff
from .errors import UnfolderError, ValidationError
from .membership import extract_membership, validate_path_uuid
from .models import MembershipDelta, Outcome, UnfoldResponse, WriterResponse
from .producer import NotificationProducer
from .relations import RelationsGateway
from .writer import WriteGateway

logger = get_logger("unfolder")


@dataclass(frozen=True)
class UnfolderConfig:
    unfolding_whitelist: FrozenSet[str]

    @classmethod
    def of(cls, whitelist: Iterable[str]) -> "UnfolderConfig":
        return cls(unfolding_whitelist=frozenset(whitelist))


def augment_with_parent(delta: MembershipDelta, parent: str) -> MembershipDelta:
    """Copy of *delta* with *parent* (when non-empty) announced as not removed."""
    notify = dict(delta)
    if parent:
        notify[parent] = False
    return notify


class Unfolder:
    def __init__(
        self,
        config: UnfolderConfig,
        *,
        relations: RelationsGateway,
        writer: WriteGateway,
        content: ContentExpander,
        producer: NotificationProducer,
    ) -> None:
        self._config = config
        self._relations = relations
        self._writer = writer
        self._content = content
        self._producer = producer

    @property
    def config(self) -> UnfolderConfig:
        return self._config

    async def handle(
        self,
        collection_uuid: str,
        collection_type: str,
        raw_body: bytes,
        transaction_id: str,
    ) -> UnfoldResponse:
        ctx = {
            "request_id": transaction_id,
            "collection_uuid": collection_uuid,
            "collection_type": collection_type,
        }
        try:
            resp = await self._unfold(collection_uuid, collection_type, raw_body, transaction_id, ctx)
        except ValidationError as exc:
            log_stage(logger, "unfold", "bad_request", error=exc.message, level="WARNING", **ctx)
            resp = self._error(exc, transaction_id, Outcome.BAD_REQUEST)
        except UnfolderError as exc:
            record_error(
                exc.code.value, where=getattr(exc, "gateway", "unfold"), message=exc.message,
                logger=logger, stage="unfold", **ctx,
            )
            resp = self._error(exc, transaction_id, Outcome.INTERNAL_ERROR)
        core_metrics.counter("unfolder_outcomes_total", 1, outcome=resp.outcome.value)
        return resp

    async def _unfold(
        self,
        collection_uuid: str,
        collection_type: str,
        raw_body: bytes,
        transaction_id: str,
        ctx: dict,
    ) -> UnfoldResponse:
        validate_path_uuid(collection_uuid)
        incoming, last_modified = extract_membership(raw_body)

        relations = await self._relations.get_relations(collection_uuid, transaction_id)
        delta = diff(incoming, relations.contains)

        written = await self._writer.write(collection_type, collection_uuid, raw_body, transaction_id)
        if written.status != 200:
            log_stage(logger, "unfold", "skip_unfolding", reason="writer_status",
                      writer_status=written.status, **ctx)
            return self._pass_through(written)

        if collection_type not in self._config.unfolding_whitelist:
            log_stage(logger, "unfold", "skip_unfolding", reason="collection_type_not_allowed", **ctx)
            return self._pass_through(written)

        notify = augment_with_parent(delta, relations.parent)
        if not notify:
            log_stage(logger, "unfold", "skip_unfolding", reason="nothing_to_notify", **ctx)
            return self._pass_through(written, status=200)

        to_resolve = [uuid for uuid, removed in notify.items() if not removed]
        records = await self._content.resolve(to_resolve, transaction_id)

        log_stage(logger, "unfold", "unfolded",
                  added=sorted(u for u, r in delta.items() if not r),
                  removed=sorted(u for u, r in delta.items() if r),
                  parent=relations.parent or None, notify_count=len(notify), **ctx)
        report = await self._producer.send(
            notify, records, last_modified=last_modified, transaction_id=transaction_id,
        )
        log_stage(logger, "unfold", "unfold_complete",
                  published=len(report.published), failed_count=len(report.failed),
                  skipped_count=len(report.skipped), **ctx)
        return UnfoldResponse(
            status=200, body=written.body, outcome=Outcome.OK,
            content_type=written.content_type or "application/json;charset=utf-8",
        )

    @staticmethod
    def _pass_through(written: WriterResponse, *, status: int | None = None) -> UnfoldResponse:
        return UnfoldResponse(
            status=status if status is not None else written.status,
            body=written.body,
            outcome=Outcome.PASS_THROUGH,
            content_type=written.content_type or "application/json;charset=utf-8",
        )

    @staticmethod
    def _error(exc: UnfolderError, transaction_id: str, outcome: Outcome) -> UnfoldResponse:
        body = error_envelope(exc.code, exc.message, transaction_id)
        return UnfoldResponse(
            status=exc.status_code,
            body=jsonx.dumps_bytes(body),
            outcome=outcome,
        )


__all__ = ["Unfolder", "UnfolderConfig", "augment_with_parent"]
