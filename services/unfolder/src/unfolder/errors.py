"""
Failure taxonomy for the unfold pipeline.

Each error carries the ``ErrorCode`` used in the response envelope and the
HTTP status the orchestrator maps it to. Pass-through is an outcome, not an
error, and has no class here.
"""
from __future__ import annotations

from core_logging.error_codes import ErrorCode


class UnfolderError(Exception):
    status_code: int = 500
    code: ErrorCode = ErrorCode.internal

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(UnfolderError):
    """Inbound path or body rejected before any outbound call."""
    status_code = 400
    code = ErrorCode.validation_failed


class GatewayError(UnfolderError):
    """A relations, writer or content call failed (transport, status or decoding)."""
    status_code = 500
    code = ErrorCode.upstream_error

    def __init__(self, message: str, *, gateway: str, code: ErrorCode | None = None) -> None:
        super().__init__(message, code=code)
        self.gateway = gateway


class PublishError(UnfolderError):
    """Delivery of one notification failed; logged per event, never surfaced."""
    code = ErrorCode.publish_failed

    def __init__(self, message: str, *, uuid: str | None = None) -> None:
        super().__init__(message)
        self.uuid = uuid


__all__ = ["UnfolderError", "ValidationError", "GatewayError", "PublishError"]
