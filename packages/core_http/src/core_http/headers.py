"""
Canonical HTTP header names used by the unfolder and its collaborators.
"""
from typing import Final, Mapping, Dict

# --- Correlation ---------------------------------------------------------------
TRANSACTION_ID_HEADER: Final[str]   = "X-Request-Id"      # read on ingress, echoed on responses, forwarded downstream

# --- Outbound notification message headers -------------------------------------
MESSAGE_ID: Final[str]              = "Message-Id"
MESSAGE_TYPE: Final[str]            = "Message-Type"
MESSAGE_TIMESTAMP: Final[str]       = "Message-Timestamp"
ORIGIN_SYSTEM_ID: Final[str]        = "Origin-System-Id"
CONTENT_TYPE: Final[str]            = "Content-Type"

# --- Kafka REST proxy ----------------------------------------------------------
KAFKA_BINARY_CONTENT_TYPE: Final[str] = "application/vnd.kafka.binary.v1+json"
AUTHORIZATION: Final[str]           = "Authorization"
HOST: Final[str]                    = "Host"

def transaction_headers(transaction_id: str | None, extra: Mapping[str, str] | None = None) -> Dict[str, str]:
    """
    Outbound headers carrying the transaction id with canonical casing.
    Empty values are dropped.
    """
    out: Dict[str, str] = {}
    if transaction_id:
        out[TRANSACTION_ID_HEADER] = str(transaction_id)
    for k, v in (extra or {}).items():
        if isinstance(v, str) and v.strip():
            out[k] = v
    return out

__all__ = [
    "TRANSACTION_ID_HEADER",
    "MESSAGE_ID",
    "MESSAGE_TYPE",
    "MESSAGE_TIMESTAMP",
    "ORIGIN_SYSTEM_ID",
    "CONTENT_TYPE",
    "KAFKA_BINARY_CONTENT_TYPE",
    "AUTHORIZATION",
    "HOST",
    "transaction_headers",
]
