import json

import pytest

from unfolder.errors import ValidationError
from unfolder.membership import extract_membership, validate_path_uuid

from .conftest import LAST_MODIFIED, X, Y, collection_body


def test_extracts_members_in_payload_order_and_last_modified():
    members, last_modified = extract_membership(collection_body(Y, X))
    assert members == [Y, X]
    assert last_modified == LAST_MODIFIED


@pytest.mark.parametrize("items", [None, []])
def test_null_or_empty_items_yield_no_members(items):
    body = {"lastModified": LAST_MODIFIED, "items": items}
    members, _ = extract_membership(json.dumps(body).encode())
    assert members == []


def test_items_key_absent():
    members, _ = extract_membership(json.dumps({"lastModified": LAST_MODIFIED}).encode())
    assert members == []


def test_unknown_fields_are_ignored():
    body = {"lastModified": LAST_MODIFIED, "items": [{"uuid": X, "extra": 1}], "publishReference": "tid_x"}
    members, _ = extract_membership(json.dumps(body).encode())
    assert members == [X]


def test_offset_timestamps_are_accepted():
    members, lm = extract_membership(collection_body(X, last_modified="2017-01-31T15:33:21.687+0100"))
    assert lm == "2017-01-31T15:33:21.687+0100"


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b"   ",
        b"not json",
        b"[]",
        b'"string"',
        json.dumps({"items": [{"uuid": X}]}).encode(),                              # lastModified missing
        json.dumps({"lastModified": "2017-01-31T15:33:21Z", "items": []}).encode(),  # no millis
        json.dumps({"lastModified": "2017-01-31 15:33:21.687Z", "items": []}).encode(),
        json.dumps({"lastModified": "2017-13-31T15:33:21.687Z", "items": []}).encode(),
        json.dumps({"lastModified": 12, "items": []}).encode(),
        json.dumps({"lastModified": LAST_MODIFIED, "items": [{"uuid": "not-a-uuid"}]}).encode(),
        json.dumps({"lastModified": LAST_MODIFIED, "items": [{}]}).encode(),
        json.dumps({"lastModified": LAST_MODIFIED, "items": {"uuid": X}}).encode(),
    ],
)
def test_invalid_bodies_raise_validation_error(raw):
    with pytest.raises(ValidationError) as exc:
        extract_membership(raw)
    assert exc.value.status_code == 400


def test_path_uuid_validation():
    assert validate_path_uuid(X) == X
    assert validate_path_uuid(X.upper()) == X.upper()
    with pytest.raises(ValidationError):
        validate_path_uuid("1234")
    with pytest.raises(ValidationError):
        validate_path_uuid(X + "\n")


def test_item_uuid_with_trailing_newline_is_rejected():
    with pytest.raises(ValidationError):
        extract_membership(collection_body(X + "\n"))
