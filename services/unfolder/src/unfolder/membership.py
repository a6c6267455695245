"""
Inbound body extraction: member UUIDs in payload order plus ``lastModified``.
"""
from __future__ import annotations

from typing import Tuple

import pydantic

from core_utils.ids import is_uuid
from .errors import ValidationError
from .models import ContentCollection, MemberSet


def _describe(exc: pydantic.ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "__root__")
    msg = first.get("msg", "invalid body")
    return f"{loc}: {msg}" if loc else msg


def extract_membership(raw_body: bytes | str) -> Tuple[MemberSet, str]:
    """
    Parse a collection body into ``(member_uuids, last_modified)``.

    Missing, null or empty ``items`` yield an empty member set. Raises
    ``ValidationError`` when the body is not a JSON object, ``lastModified``
    is absent or malformed, or any item UUID is not canonical.
    """
    if not raw_body or not raw_body.strip():
        raise ValidationError("request body is empty")
    try:
        collection = ContentCollection.model_validate_json(raw_body)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid collection body ({_describe(exc)})") from exc
    return collection.member_uuids, collection.last_modified


def validate_path_uuid(value: str) -> str:
    if not is_uuid(value):
        raise ValidationError(f"invalid uuid in request path: {value!r}")
    return value


__all__ = ["extract_membership", "validate_path_uuid"]
