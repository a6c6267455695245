import os


# Per-call budgets (ms) for the outbound collaborators – env override keeps tests happy
TIMEOUT_RELATIONS_MS = int(os.getenv("TIMEOUT_RELATIONS_MS", "5000"))
TIMEOUT_WRITER_MS    = int(os.getenv("TIMEOUT_WRITER_MS",    "10000"))
TIMEOUT_CONTENT_MS   = int(os.getenv("TIMEOUT_CONTENT_MS",   "5000"))
TIMEOUT_PUBLISH_MS   = int(os.getenv("TIMEOUT_PUBLISH_MS",   "3000"))
TIMEOUT_HEALTH_MS    = int(os.getenv("TIMEOUT_HEALTH_MS",    "10000"))

# HTTP client pool
HTTP_MAX_KEEPALIVE   = int(os.getenv("HTTP_MAX_KEEPALIVE", "20"))
HTTP_MAX_CONNECTIONS = int(os.getenv("HTTP_MAX_CONNECTIONS", "100"))

# Outbound message contract (cms publication events)
MESSAGE_TYPE_CONTENT_PUBLISHED = "cms-content-published"
ORIGIN_SYSTEM_ID = os.getenv("ORIGIN_SYSTEM_ID", "http://cmdb.ft.com/systems/methode-web-pub")

_STAGE_TIMEOUTS_MS = {
    "relations": TIMEOUT_RELATIONS_MS,
    "writer": TIMEOUT_WRITER_MS,
    "content": TIMEOUT_CONTENT_MS,
    "publish": TIMEOUT_PUBLISH_MS,
    "health": TIMEOUT_HEALTH_MS,
}

def timeout_for_stage(stage: str) -> float:
    return _STAGE_TIMEOUTS_MS.get(stage, TIMEOUT_WRITER_MS) / 1000.0
