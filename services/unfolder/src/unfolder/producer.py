"""
Event shaping and publish fan-out.

Non-removed members are announced with their full content record as
``payload``; removed members become tombstones whose body has no
``payload`` key. Every event gets a fresh message id and carries the
request's transaction id and the collection's ``lastModified`` verbatim.
"""
from __future__ import annotations

import asyncio
from typing import Dict, List, Mapping, Tuple

import core_metrics
from core_config.constants import MESSAGE_TYPE_CONTENT_PUBLISHED, ORIGIN_SYSTEM_ID
from core_http import headers as h
from core_logging import get_logger, log_stage, record_error
from core_logging.error_codes import ErrorCode
from core_utils import jsonx
from core_utils.ids import generate_message_id
from .errors import PublishError
from .models import ContentRecord, MembershipDelta, NotificationEvent, PublishReport
from .queue import EventPublisher, Message

logger = get_logger("unfolder.producer")


def build_events(
    notify_set: MembershipDelta,
    records: Mapping[str, ContentRecord],
    *,
    last_modified: str,
    transaction_id: str,
    content_uri_base: str,
) -> Tuple[List[NotificationEvent], List[str]]:
    """
    One event per NotifySet entry, in NotifySet order. Returns
    ``(events, skipped_uuids)``; a non-removed entry without a matching
    content record is skipped. *records* is keyed by lower-cased UUID.
    """
    events: List[NotificationEvent] = []
    skipped: List[str] = []
    for uuid, removed in notify_set.items():
        payload = None
        if not removed:
            payload = records.get(uuid.lower())
            if payload is None:
                skipped.append(uuid)
                continue
        events.append(NotificationEvent(
            uuid=uuid,
            content_uri=content_uri_base + uuid,
            last_modified=last_modified,
            transaction_id=transaction_id,
            message_id=generate_message_id(),
            payload=payload,
        ))
    return events, skipped


def to_message(event: NotificationEvent) -> Message:
    body: Dict[str, object] = {
        "contentUri": event.content_uri,
        "lastModified": event.last_modified,
    }
    if not event.is_tombstone:
        body["payload"] = event.payload
    return Message(
        headers={
            h.TRANSACTION_ID_HEADER: event.transaction_id,
            h.MESSAGE_TIMESTAMP: event.last_modified,
            h.MESSAGE_ID: event.message_id,
            h.MESSAGE_TYPE: MESSAGE_TYPE_CONTENT_PUBLISHED,
            h.ORIGIN_SYSTEM_ID: ORIGIN_SYSTEM_ID,
            h.CONTENT_TYPE: "application/json",
        },
        body=jsonx.dumps(body),
    )


class NotificationProducer:
    def __init__(self, publisher: EventPublisher, *, content_uri_base: str) -> None:
        self._publisher = publisher
        self._content_uri_base = content_uri_base

    async def _publish_one(self, event: NotificationEvent) -> None:
        try:
            await self._publisher.publish(to_message(event), transaction_id=event.transaction_id)
        except PublishError as exc:
            raise PublishError(exc.message, uuid=event.uuid) from exc

    async def send(
        self,
        notify_set: MembershipDelta,
        records: Mapping[str, ContentRecord],
        *,
        last_modified: str,
        transaction_id: str,
    ) -> PublishReport:
        """
        Publish every event concurrently and wait for all attempts. Failures
        are logged one by one and reported, never raised.
        """
        events, skipped = build_events(
            notify_set, records,
            last_modified=last_modified,
            transaction_id=transaction_id,
            content_uri_base=self._content_uri_base,
        )
        for uuid in skipped:
            record_error(
                ErrorCode.content_missing.value, where="publish", logger=logger, level="WARNING",
                message="no content record returned; notification skipped",
                request_id=transaction_id, uuid=uuid,
            )
            core_metrics.counter("unfolder_events_skipped_total", 1)

        results = await asyncio.gather(
            *(self._publish_one(ev) for ev in events), return_exceptions=True,
        )

        published: List[str] = []
        failed: List[str] = []
        for event, result in zip(events, results):
            if isinstance(result, BaseException):
                failed.append(event.uuid)
                record_error(
                    ErrorCode.publish_failed.value, where="publish", logger=logger, level="WARNING",
                    message=str(result), request_id=transaction_id, uuid=event.uuid,
                    message_id=event.message_id, tombstone=event.is_tombstone,
                    error_type=result.__class__.__name__,
                )
                core_metrics.counter("unfolder_events_failed_total", 1)
            else:
                published.append(event.uuid)
                core_metrics.counter("unfolder_events_published_total", 1)

        log_stage(logger, "publish", "publish_complete",
                  request_id=transaction_id, published=len(published),
                  failed=len(failed), skipped=len(skipped))
        return PublishReport(published=published, failed=failed, skipped=skipped)


__all__ = ["NotificationProducer", "build_events", "to_message"]
