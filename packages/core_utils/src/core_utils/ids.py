import re, secrets, string, uuid

_UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.I)
_TID_ALPHABET = string.ascii_lowercase
_TID_PREFIX = "tid_"
_TID_RANDOM_LEN = 10

def generate_transaction_id() -> str:
    """
    Fresh transaction id for requests that arrive without ``X-Request-Id``:
    ``tid_`` followed by ten random lowercase letters.
    """
    return _TID_PREFIX + "".join(secrets.choice(_TID_ALPHABET) for _ in range(_TID_RANDOM_LEN))

def generate_message_id() -> str:
    """Random (v4) UUID for outbound messages."""
    return str(uuid.uuid4())

def is_uuid(value: object) -> bool:
    return isinstance(value, str) and _UUID_RE.fullmatch(value) is not None

def validate_uuid(value: object) -> str:
    """
    Accept the canonical 8-4-4-4-12 hex form (any case) and return it unchanged.
    Raises ``ValueError`` otherwise.
    """
    if not is_uuid(value):
        raise ValueError(f"invalid uuid: {value!r}")
    return value  # type: ignore[return-value]

__all__ = ["generate_transaction_id", "generate_message_id", "is_uuid", "validate_uuid"]
