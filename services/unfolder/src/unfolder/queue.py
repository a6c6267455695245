"""
Event Publisher: delivers one fully-formed message to the outbound topic
through a Kafka REST proxy. Each message is attempted exactly once.

Wire format: ``POST <addr>/topics/<topic>`` with
``Content-Type: application/vnd.kafka.binary.v1+json`` and body
``{"records": [{"value": base64(<FTMSG>)}]}`` where the FTMSG envelope is
``FTMSG/1.0\\n`` + ``Header: value`` lines + a blank line + the message body.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Dict, Tuple

import httpx

from core_http.client import send
from core_http.headers import AUTHORIZATION, HOST, KAFKA_BINARY_CONTENT_TYPE
from core_logging import get_logger, log_stage
from core_utils import jsonx
from .errors import PublishError

logger = get_logger("unfolder.queue")

FTMSG_VERSION = "FTMSG/1.0"


@dataclass(frozen=True)
class Message:
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


def encode_ftmsg(message: Message) -> str:
    lines = [FTMSG_VERSION]
    lines.extend(f"{k}: {v}" for k, v in message.headers.items())
    return "\n".join(lines) + "\n\n" + message.body


def proxy_records(message: Message) -> Dict[str, object]:
    value = base64.b64encode(encode_ftmsg(message).encode("utf-8")).decode("ascii")
    return {"records": [{"value": value}]}


class EventPublisher:
    def __init__(
        self,
        kafka_addr: str,
        topic: str,
        *,
        hostname: str = "",
        authorization: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._addr = kafka_addr.rstrip("/")
        self._topic = topic
        self._hostname = hostname
        self._authorization = authorization
        self._client = client

    @property
    def topic_url(self) -> str:
        return f"{self._addr}/topics/{self._topic}"

    def _proxy_headers(self) -> Dict[str, str]:
        hdrs: Dict[str, str] = {}
        if self._authorization:
            hdrs[AUTHORIZATION] = self._authorization
        if self._hostname:
            hdrs[HOST] = self._hostname
        return hdrs

    async def publish(self, message: Message, *, transaction_id: str | None = None) -> None:
        """Deliver *message* once. Raises ``PublishError`` on transport failure or non-2xx."""
        message_id = message.headers.get("Message-Id")
        headers = {"Content-Type": KAFKA_BINARY_CONTENT_TYPE, **self._proxy_headers()}
        try:
            resp = await send(
                "POST", self.topic_url,
                content=jsonx.dumps_bytes(proxy_records(message)),
                headers=headers, stage="publish",
                client=self._client, request_id=transaction_id,
            )
        except httpx.HTTPError as exc:
            raise PublishError(f"error posting to {self.topic_url}: {exc.__class__.__name__}: {exc}") from exc
        if not 200 <= resp.status_code < 300:
            raise PublishError(
                f"proxy responded with status {resp.status_code} for topic {self._topic}",
            )
        log_stage(logger, "publish", "message_posted",
                  request_id=transaction_id, topic=self._topic, message_id=message_id)

    async def connectivity_check(self) -> Tuple[bool, str]:
        """Reachability of the proxy (``GET <addr>/topics``)."""
        url = f"{self._addr}/topics"
        try:
            resp = await send("GET", url, headers=self._proxy_headers(), stage="health", client=self._client)
        except httpx.HTTPError as exc:
            return False, f"could not connect to proxy: {exc.__class__.__name__}: {exc}"
        if resp.status_code != 200:
            return False, f"proxy returned status {resp.status_code}"
        return True, "Connectivity to the proxy is OK"


__all__ = ["Message", "EventPublisher", "encode_ftmsg", "proxy_records", "FTMSG_VERSION"]
