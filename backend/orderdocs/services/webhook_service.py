"""Inbound order webhook handling.

A database trigger posts ``{type, table, record}`` when an order is created.
Each delivery is logged as a ``webhook_events`` row (processing ->
completed/failed) for audit; the rows are never read back to drive work.
"""
from __future__ import annotations

import hmac
import logging
import time
from datetime import datetime, UTC
from typing import Any, Dict, Optional

from ..config.database import Database
from ..config.observability import WEBHOOK_EVENTS_TOTAL
from ..config.settings import Settings
from ..models.database import WebhookEvent, WebhookStatus
from ..utils.errors import DomainError, ERROR_CODES, GenerationDisabled, WebhookDisabled, WebhookRejected
from .document_service import DocumentService, GenerateDocumentsRequest, GenerateDocumentsResponse

logger = logging.getLogger(__name__)

ORDER_CREATED = "order_created"


class MissingOrderId(DomainError):
    status_code = 400

    def __init__(self):
        super().__init__(ERROR_CODES["validation"], "No order ID found in payload")


def extract_order_id(payload: Dict[str, Any]) -> Optional[str]:
    record = payload.get("record")
    if isinstance(record, dict) and record.get("id"):
        return str(record["id"])
    if payload.get("order_id"):
        return str(payload["order_id"])
    return None


class WebhookProcessor:
    def __init__(self, database: Database, documents: DocumentService, settings: Settings):
        self.database = database
        self.documents = documents
        self.settings = settings

    def verify_secret(self, provided: Optional[str]) -> None:
        expected = self.settings.webhook.secret
        if not expected or not provided:
            raise WebhookRejected()
        if not hmac.compare_digest(expected.encode(), provided.encode()):
            raise WebhookRejected()

    def requested_document_type(self) -> str:
        receipts = self.settings.can_generate_receipts()
        pick_slips = self.settings.can_generate_pick_slips()
        if receipts and pick_slips:
            return "both"
        if receipts:
            return "receipt"
        if pick_slips:
            return "pick_slip"
        raise GenerationDisabled()

    async def _start_event(self, payload: Dict[str, Any], order_id: str) -> str:
        async with self.database.session() as db:
            event = WebhookEvent(
                event_type=ORDER_CREATED,
                table_name=str(payload.get("table") or "orders"),
                record_id=order_id,
                payload=payload,
                status=WebhookStatus.PROCESSING.value,
            )
            db.add(event)
            await db.flush()
            return event.id

    async def _finish_event(self, event_id: str, status: WebhookStatus, duration_ms: int,
                            error: Optional[str] = None) -> None:
        try:
            async with self.database.session() as db:
                event = await db.get(WebhookEvent, event_id)
                if event is None:
                    return
                event.status = status.value
                event.error_message = error
                event.processed_at = datetime.now(UTC)
                event.processing_duration_ms = duration_ms
        except Exception as exc:  # noqa: BLE001 - audit row only
            logger.error("Failed to finalize webhook event %s: %s", event_id, exc)
        WEBHOOK_EVENTS_TOTAL.labels(ORDER_CREATED, status.value).inc()

    async def process_order_created(self, payload: Dict[str, Any],
                                    secret: Optional[str]) -> tuple[str, GenerateDocumentsResponse]:
        """Validate, log and dispatch an order-created delivery.

        Returns the webhook event id and the orchestrator response.
        """
        if not self.settings.can_process_order_created_webhooks():
            raise WebhookDisabled(ORDER_CREATED)
        self.verify_secret(secret)
        if not self.settings.can_generate_documents():
            raise GenerationDisabled()
        document_type = self.requested_document_type()

        order_id = extract_order_id(payload)
        if order_id is None:
            raise MissingOrderId()

        logger.debug("Webhook payload for order %s: %s", order_id, payload)
        started = time.perf_counter()
        event_id = await self._start_event(payload, order_id)
        response = await self.documents.generate_documents(
            GenerateDocumentsRequest(order_id=order_id, document_type=document_type,
                                     webhook_event_id=event_id)
        )
        duration_ms = int((time.perf_counter() - started) * 1000)
        status = WebhookStatus.COMPLETED if response.success else WebhookStatus.FAILED
        await self._finish_event(event_id, status, duration_ms, response.error)
        logger.info("Webhook %s for order %s finished %s in %dms",
                    event_id, order_id, status.value, duration_ms)
        return event_id, response


__all__ = ["WebhookProcessor", "MissingOrderId", "extract_order_id", "ORDER_CREATED"]
