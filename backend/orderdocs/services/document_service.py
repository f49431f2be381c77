"""Document generation orchestrator.

Coordinates order lookup, rendering, upload and tracking-row bookkeeping.

Per requested document type the tracking row moves pending -> generated or
pending -> failed. A ``both`` request runs the two pipelines concurrently and
each settles independently; the top-level ``success`` flag is false when any
requested document failed. Every public method returns a structured result;
nothing here raises to the caller.

Known trade-offs kept on purpose:
 - No idempotency key: each call inserts new tracking rows.
 - Retry redoes the whole pipeline (render included) on the same row.
 - If the final row update itself fails it is logged and swallowed, so a row
   can remain ``pending``.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from datetime import datetime, UTC
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.orm import joinedload, selectinload

from ..config.database import Database
from ..config.observability import record_generation, trace_operation
from ..config.settings import Settings
from ..models.database import DocumentStatus, Order, OrderAddon, OrderDocument, OrderItem
from ..utils.errors import ERROR_CODES
from .document_types import DocumentGenerationResult, OrderWithDetails, UploadedDocument
from .pdf_service import PDFGenerationService, epoch_ms, remove_local_file
from .storage_service import StorageService

logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "Order not found"
DOCUMENT_NOT_FOUND = "Document record not found"
PARTIAL_FAILURE = "One or more documents failed to generate"

DocumentTypeName = Literal["receipt", "pick_slip"]
RequestedType = Literal["receipt", "pick_slip", "both"]


# ----------------------------- Request / Response ---------------------------- #


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateDocumentsRequest(_CamelModel):
    order_id: str = Field(alias="orderId", min_length=1)
    document_type: RequestedType = Field(alias="documentType")
    webhook_event_id: Optional[str] = Field(default=None, alias="webhookEventId")

    @property
    def document_types(self) -> List[str]:
        if self.document_type == "both":
            return ["receipt", "pick_slip"]
        return [self.document_type]


class DocumentOutcome(_CamelModel):
    id: Optional[str] = None
    file_url: Optional[str] = Field(default=None, alias="fileUrl")
    status: str
    error: Optional[str] = None


class DocumentsResult(_CamelModel):
    receipt: Optional[DocumentOutcome] = None
    pick_slip: Optional[DocumentOutcome] = Field(default=None, alias="pickSlip")


class GenerateDocumentsResponse(_CamelModel):
    success: bool
    documents: DocumentsResult = Field(default_factory=DocumentsResult)
    error: Optional[str] = None
    # Machine-readable reason for routers; not part of the JSON body
    code: Optional[str] = Field(default=None, exclude=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class HealthStatus(_CamelModel):
    healthy: bool
    database: bool
    storage: bool
    configuration: bool
    storage_stats: Optional[Dict[str, Any]] = Field(default=None, alias="storageStats")
    last_check: str = Field(alias="lastCheck")
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# --------------------------------- Service ---------------------------------- #


class DocumentService:
    """Orchestrates fetch -> render -> upload -> record for order documents."""

    def __init__(self, database: Database, pdf_generator: PDFGenerationService,
                 storage: StorageService, settings: Settings):
        self.database = database
        self.pdf_generator = pdf_generator
        self.storage = storage
        self.settings = settings

    @property
    def timeout_seconds(self) -> Optional[float]:
        timeout_ms = self.settings.generation.timeout_ms
        return timeout_ms / 1000 if timeout_ms > 0 else None

    # -- persistence helpers ------------------------------------------- #

    async def _fetch_order(self, order_id: str) -> Optional[OrderWithDetails]:
        async with self.database.session() as db:
            result = await db.execute(
                select(Order)
                .options(
                    selectinload(Order.items).joinedload(OrderItem.product),
                    selectinload(Order.addons).joinedload(OrderAddon.addon),
                )
                .where(Order.id == order_id)
            )
            order = result.scalar_one_or_none()
            if order is None:
                return None
            return OrderWithDetails.from_model(order)

    async def _create_record(self, order_id: str, document_type: str,
                             webhook_event_id: Optional[str]) -> str:
        async with self.database.session() as db:
            record = OrderDocument(
                order_id=order_id,
                document_type=document_type,
                status=DocumentStatus.PENDING.value,
                webhook_event_id=webhook_event_id,
                retry_count=0,
                metadata_={
                    "generated_by": "document-service",
                    "generation_started_at": _now_iso(),
                },
            )
            db.add(record)
            await db.flush()
            return record.id

    async def _update_record(self, document_id: str, status: DocumentStatus, *,
                             file_url: Optional[str] = None, file_path: Optional[str] = None,
                             error_message: Optional[str] = None,
                             metadata: Optional[Dict[str, Any]] = None) -> None:
        """Finalize a tracking row. Failures are logged, never raised."""
        try:
            async with self.database.session() as db:
                record = await db.get(OrderDocument, document_id)
                if record is None:
                    logger.error("Tracking row %s vanished before update", document_id)
                    return
                record.status = status.value
                record.error_message = error_message
                record.file_url = file_url
                record.file_path = file_path
                if status == DocumentStatus.GENERATED:
                    record.generated_at = datetime.now(UTC)
                merged = dict(record.metadata_ or {})
                merged.update(metadata or {})
                merged["generation_completed_at"] = _now_iso()
                record.metadata_ = merged
        except Exception as exc:  # noqa: BLE001 - must not mask the original outcome
            logger.error("Failed to update tracking row %s to %s: %s", document_id, status.value, exc)

    # -- pipeline ------------------------------------------------------- #

    async def _render_and_upload(self, order_data: OrderWithDetails,
                                 document_type: str) -> Tuple[DocumentGenerationResult, UploadedDocument]:
        template_data = self.pdf_generator.prepare_template_data(order_data, document_type)
        generation = await self.pdf_generator.generate_document(document_type, template_data)
        if not generation.success:
            raise RuntimeError(generation.error or "PDF generation failed")

        file_name = f"{document_type}_{order_data.order.order_number}_{epoch_ms()}.pdf"
        try:
            uploaded = await self.pdf_generator.upload_document(generation.file_path, file_name)
        finally:
            remove_local_file(generation.file_path)
        return generation, uploaded

    async def _process_document(self, document_id: str, order_data: OrderWithDetails,
                                document_type: str) -> DocumentOutcome:
        """Run render + upload for an existing pending row and record the outcome."""
        started = time.perf_counter()
        try:
            with trace_operation("render_and_upload", document_id=document_id,
                                 document_type=document_type, order_id=order_data.order.id):
                generation, uploaded = await asyncio.wait_for(
                    self._render_and_upload(order_data, document_type),
                    timeout=self.timeout_seconds,
                )
        except asyncio.TimeoutError:
            error = f"Document generation timed out after {self.settings.generation.timeout_ms}ms"
        except Exception as exc:  # noqa: BLE001 - recorded on the tracking row
            error = str(exc) or exc.__class__.__name__
        else:
            metadata = dataclasses.asdict(generation.metadata)
            metadata["storage_path"] = uploaded.file_path
            await self._update_record(
                document_id,
                DocumentStatus.GENERATED,
                file_url=uploaded.file_url,
                file_path=uploaded.file_path,
                metadata=metadata,
            )
            record_generation(document_type, DocumentStatus.GENERATED.value, time.perf_counter() - started)
            logger.info("Generated %s for order %s (row %s)",
                        document_type, order_data.order.order_number, document_id)
            return DocumentOutcome(id=document_id, file_url=uploaded.file_url,
                                   status=DocumentStatus.GENERATED.value)

        logger.error("Failed to generate %s for order %s (row %s): %s",
                     document_type, order_data.order.order_number, document_id, error)
        await self._update_record(document_id, DocumentStatus.FAILED, error_message=error)
        record_generation(document_type, DocumentStatus.FAILED.value, time.perf_counter() - started)
        return DocumentOutcome(id=document_id, status=DocumentStatus.FAILED.value, error=error)

    async def _generate_one(self, order_data: OrderWithDetails, document_type: str,
                            webhook_event_id: Optional[str]) -> DocumentOutcome:
        document_id = await self._create_record(order_data.order.id, document_type, webhook_event_id)
        return await self._process_document(document_id, order_data, document_type)

    @staticmethod
    def _build_response(outcomes: Dict[str, DocumentOutcome]) -> GenerateDocumentsResponse:
        success = all(o.status == DocumentStatus.GENERATED.value for o in outcomes.values())
        return GenerateDocumentsResponse(
            success=success,
            documents=DocumentsResult(
                receipt=outcomes.get("receipt"),
                pick_slip=outcomes.get("pick_slip"),
            ),
            error=None if success else PARTIAL_FAILURE,
            code=None if success else ERROR_CODES["generation_failed"],
        )

    # -- public API ----------------------------------------------------- #

    async def generate_documents(self, request: GenerateDocumentsRequest) -> GenerateDocumentsResponse:
        """Generate the requested document(s) for one order."""
        try:
            with trace_operation("generate_documents", order_id=request.order_id,
                                 document_type=request.document_type):
                order_data = await self._fetch_order(request.order_id)
                if order_data is None:
                    return GenerateDocumentsResponse(success=False, error=ORDER_NOT_FOUND,
                                                     code=ERROR_CODES["order_not_found"])

                types = request.document_types
                results = await asyncio.gather(
                    *(self._generate_one(order_data, t, request.webhook_event_id) for t in types),
                    return_exceptions=True,
                )
                outcomes: Dict[str, DocumentOutcome] = {}
                for document_type, result in zip(types, results):
                    if isinstance(result, BaseException):
                        if not isinstance(result, Exception):
                            raise result
                        logger.error("Unexpected %s pipeline error for order %s: %s",
                                     document_type, request.order_id, result)
                        result = DocumentOutcome(status=DocumentStatus.FAILED.value,
                                                 error=str(result) or result.__class__.__name__)
                    outcomes[document_type] = result
                return self._build_response(outcomes)
        except Exception as exc:  # noqa: BLE001 - outermost boundary
            logger.error("Document generation for order %s failed: %s",
                         request.order_id, exc, exc_info=True)
            return GenerateDocumentsResponse(success=False, error=str(exc) or "Unknown error occurred",
                                             code=ERROR_CODES["internal"])

    async def retry_document(self, document_id: str) -> GenerateDocumentsResponse:
        """Re-run the full pipeline on an existing tracking row (retry_count + 1)."""
        try:
            with trace_operation("retry_document", document_id=document_id):
                async with self.database.session() as db:
                    record = await db.get(OrderDocument, document_id)
                    if record is None:
                        return GenerateDocumentsResponse(success=False, error=DOCUMENT_NOT_FOUND,
                                                         code=ERROR_CODES["document_not_found"])
                    record.retry_count = (record.retry_count or 0) + 1
                    record.status = DocumentStatus.PENDING.value
                    record.error_message = None
                    record.metadata_ = {
                        **(record.metadata_ or {}),
                        "retry_started_at": _now_iso(),
                    }
                    order_id = record.order_id
                    document_type = record.document_type
                    retry_count = record.retry_count

                logger.info("Retrying %s row %s (attempt %d)", document_type, document_id, retry_count)
                order_data = await self._fetch_order(order_id)
                if order_data is None:
                    await self._update_record(document_id, DocumentStatus.FAILED, error_message=ORDER_NOT_FOUND)
                    return GenerateDocumentsResponse(success=False, error=ORDER_NOT_FOUND,
                                                     code=ERROR_CODES["order_not_found"])

                outcome = await self._process_document(document_id, order_data, document_type)
                return self._build_response({document_type: outcome})
        except Exception as exc:  # noqa: BLE001 - outermost boundary
            logger.error("Retry of row %s failed: %s", document_id, exc, exc_info=True)
            return GenerateDocumentsResponse(success=False, error=str(exc) or "Unknown error occurred",
                                             code=ERROR_CODES["internal"])

    async def get_order_documents(self, order_id: str) -> List[OrderDocument]:
        """All tracking rows for an order, newest first."""
        async with self.database.session() as db:
            result = await db.execute(
                select(OrderDocument)
                .where(OrderDocument.order_id == order_id)
                .order_by(OrderDocument.created_at.desc(), OrderDocument.id.desc())
            )
            return list(result.scalars().all())

    async def get_health_status(self) -> HealthStatus:
        """Composite health of database, storage and configuration; never raises."""
        try:
            database_ok = await self.database.check_connection()
            stats = await self.storage.get_storage_stats("documents")
            configuration_ok = self.settings.can_generate_documents()
            return HealthStatus(
                healthy=database_ok and stats.reachable and configuration_ok,
                database=database_ok,
                storage=stats.reachable,
                configuration=configuration_ok,
                storage_stats=dataclasses.asdict(stats),
                last_check=_now_iso(),
            )
        except Exception as exc:  # noqa: BLE001 - reported, not raised
            logger.error("Health check failed: %s", exc)
            return HealthStatus(
                healthy=False,
                database=False,
                storage=False,
                configuration=False,
                last_check=_now_iso(),
                error=str(exc),
            )


__all__ = [
    "DocumentService",
    "GenerateDocumentsRequest",
    "GenerateDocumentsResponse",
    "DocumentOutcome",
    "DocumentsResult",
    "HealthStatus",
    "ORDER_NOT_FOUND",
    "DOCUMENT_NOT_FOUND",
    "PARTIAL_FAILURE",
]
