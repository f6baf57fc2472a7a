"""Public interface for the remote CRM object adapter."""

from __future__ import annotations

from .client import HttpRemoteSystemClient
from .schema import UNIQUE_CONFLICT, BatchResponse, ErrorResponse, ObjectPage, ObjectPayload
from .translator import batch_item_results, parse_record

__all__ = [
    "UNIQUE_CONFLICT",
    "BatchResponse",
    "ErrorResponse",
    "HttpRemoteSystemClient",
    "ObjectPage",
    "ObjectPayload",
    "batch_item_results",
    "parse_record",
]
