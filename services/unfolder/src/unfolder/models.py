from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core_utils.ids import validate_uuid

# uuid -> removed
MembershipDelta = Dict[str, bool]
MemberSet = List[str]
ContentRecord = Dict[str, Any]

# Publication timestamps carry millisecond precision and a Z or ±HHMM offset,
# e.g. 2017-01-31T15:33:21.687Z
_LAST_MODIFIED_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}(Z|[+-]\d{4})$")
_LAST_MODIFIED_FMT = "%Y-%m-%dT%H:%M:%S.%f%z"


def validate_last_modified(value: str) -> str:
    if not _LAST_MODIFIED_RE.match(value):
        raise ValueError(f"lastModified {value!r} is not of the form 2006-01-02T15:04:05.000Z0700")
    # Calendar check (month/day/hour ranges)
    datetime.strptime(value, _LAST_MODIFIED_FMT)
    return value


class CollectionItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str

    @field_validator("uuid")
    @classmethod
    def _uuid(cls, v: str) -> str:
        return validate_uuid(v)


class ContentCollection(BaseModel):
    """Inbound collection body; only the fields the pipeline reads are modelled."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    last_modified: str = Field(alias="lastModified")
    items: List[CollectionItem] = Field(default_factory=list)

    @field_validator("last_modified")
    @classmethod
    def _last_modified(cls, v: str) -> str:
        return validate_last_modified(v)

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def member_uuids(self) -> MemberSet:
        return [item.uuid for item in self.items]


class CollectionRelations(BaseModel):
    """Previous membership and parent of a collection as recorded by the relations API."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    contained_in: str = Field(default="", alias="containedIn")
    contains: List[str] = Field(default_factory=list)

    @field_validator("contained_in", mode="before")
    @classmethod
    def _contained_in(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("contains", mode="before")
    @classmethod
    def _contains(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def parent(self) -> str:
        return self.contained_in


@dataclass(frozen=True)
class NotificationEvent:
    uuid: str
    content_uri: str
    last_modified: str
    transaction_id: str
    message_id: str
    payload: Optional[ContentRecord] = None

    @property
    def is_tombstone(self) -> bool:
        return self.payload is None


@dataclass(frozen=True)
class WriterResponse:
    status: int
    body: bytes
    content_type: Optional[str] = None


class Outcome(str, enum.Enum):
    BAD_REQUEST = "bad_request"
    INTERNAL_ERROR = "internal_error"
    PASS_THROUGH = "pass_through"
    OK = "ok"


@dataclass(frozen=True)
class UnfoldResponse:
    status: int
    body: bytes
    outcome: Outcome
    content_type: Optional[str] = "application/json;charset=utf-8"


@dataclass(frozen=True)
class PublishReport:
    published: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


__all__ = [
    "MembershipDelta",
    "MemberSet",
    "ContentRecord",
    "CollectionItem",
    "ContentCollection",
    "CollectionRelations",
    "NotificationEvent",
    "WriterResponse",
    "Outcome",
    "UnfoldResponse",
    "PublishReport",
    "validate_last_modified",
]
