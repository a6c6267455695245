from .ids import *
from . import jsonx

__all__ = [
    "generate_transaction_id",
    "generate_message_id",
    "is_uuid",
    "validate_uuid",
    "jsonx",
]
