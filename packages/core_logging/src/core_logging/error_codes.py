from enum import Enum

class ErrorCode(str, Enum):
    """
    Canonical error codes for the public error envelope.
    """
    validation_failed         = "validation_failed"
    internal                  = "internal"
    upstream_timeout          = "upstream_timeout"
    upstream_error            = "upstream_error"
    publish_failed            = "publish_failed"
    content_missing           = "content_missing"

__all__ = ["ErrorCode"]
