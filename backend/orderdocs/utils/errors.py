"""Centralized error response helpers and domain exceptions.

Every error leaving the HTTP surface uses the same envelope:
`{"status": "error", "success": false, "error": {code, message, details?}, "timestamp", "path"}`.
"""
from __future__ import annotations
from typing import Any, Dict
import time

ERROR_CODES = {
    "validation": "VALIDATION_ERROR",
    "not_found": "NOT_FOUND",
    "order_not_found": "ORDER_NOT_FOUND",
    "document_not_found": "DOCUMENT_NOT_FOUND",
    "generation_disabled": "GENERATION_DISABLED",
    "generation_failed": "GENERATION_FAILED",
    "webhook_disabled": "WEBHOOK_DISABLED",
    "webhook_rejected": "WEBHOOK_REJECTED",
    "storage": "STORAGE_ERROR",
    "db": "DB_ERROR",
    "internal": "INTERNAL_SERVER_ERROR",
}


def error_payload(code: str, message: str, details: Any | None = None, path: str | None = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "status": "error",
        "success": False,
        "error": {
            "code": code,
            "message": message,
        },
        "timestamp": time.time(),
    }
    if details is not None:
        payload["error"]["details"] = details
    if path:
        payload["path"] = path
    return payload


class DomainError(Exception):
    """Base domain error storing standardized fields."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Any | None = None):  # noqa: D401
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class OrderNotFound(DomainError):
    status_code = 404

    def __init__(self, order_id: str):
        super().__init__(ERROR_CODES["order_not_found"], "Order not found", {"order_id": order_id})


class DocumentNotFound(DomainError):
    status_code = 404

    def __init__(self, document_id: str):
        super().__init__(ERROR_CODES["document_not_found"], "Document record not found",
                         {"document_id": document_id})


class GenerationDisabled(DomainError):
    status_code = 503

    def __init__(self):
        super().__init__(ERROR_CODES["generation_disabled"], "Document generation is currently disabled")


class WebhookDisabled(DomainError):
    status_code = 503

    def __init__(self, event_type: str):
        super().__init__(ERROR_CODES["webhook_disabled"],
                         f"Webhook processing for {event_type} is currently disabled")


class WebhookRejected(DomainError):
    status_code = 401

    def __init__(self, message: str = "Invalid webhook secret"):
        super().__init__(ERROR_CODES["webhook_rejected"], message)


class StorageError(DomainError):
    """Raised where an unsuccessful storage result must become an exception."""

    status_code = 502

    def __init__(self, message: str):
        super().__init__(ERROR_CODES["storage"], message)


__all__ = [
    "ERROR_CODES",
    "error_payload",
    "DomainError",
    "OrderNotFound",
    "DocumentNotFound",
    "GenerationDisabled",
    "WebhookDisabled",
    "WebhookRejected",
    "StorageError",
]
