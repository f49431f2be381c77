"""PDF generation facade.

Turns template data into a PDF file on local disk and hands finished files to
the storage client. Rendering is CPU-bound ReportLab drawing, so it runs in a
worker thread to keep the event loop responsive.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import time
from datetime import datetime, UTC
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from .document_types import (
    DEFAULT_COMPANY_INFO,
    DocumentGenerationOptions,
    DocumentGenerationResult,
    DocumentMetadata,
    DocumentTemplateData,
    OrderWithDetails,
    UploadedDocument,
)
from .storage_service import StorageService
from .templates import render_pick_slip, render_receipt
from .templates.base import count_pages
from ..utils.errors import StorageError

LOGGER = logging.getLogger(__name__)

UPLOAD_FOLDER = "documents"

Renderer = Callable[[DocumentTemplateData, bool], bytes]

RENDERERS: Dict[str, Renderer] = {
    "receipt": render_receipt,
    "pick_slip": render_pick_slip,
}
FILENAME_PREFIXES = {
    "receipt": "receipt",
    "pick_slip": "pickslip",
}


def epoch_ms() -> int:
    return int(time.time() * 1000)


class PDFGenerationService:
    """Render order documents to local files and upload them."""

    def __init__(self, output_dir: str = "/tmp/documents", storage: Optional[StorageService] = None,
                 compress: bool = True):
        self.output_dir = Path(output_dir)
        self.storage = storage
        self.compress = compress

    def _ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _render_to_file(self, renderer: Renderer, data: DocumentTemplateData, compress: bool,
                        file_path: Path) -> Tuple[int, int]:
        """Render and write one document; returns (file size, page count)."""
        pdf_bytes = renderer(data, compress)
        self._ensure_output_dir()
        file_path.write_bytes(pdf_bytes)
        return file_path.stat().st_size, count_pages(pdf_bytes)

    async def generate_document(self, document_type: str, data: DocumentTemplateData,
                                options: Optional[DocumentGenerationOptions] = None) -> DocumentGenerationResult:
        """Render `document_type` to disk; failures come back as a result, never raised."""
        started = time.perf_counter()
        options = options or DocumentGenerationOptions(compress=self.compress)
        try:
            renderer = RENDERERS[document_type]
            filename = options.filename or (
                f"{FILENAME_PREFIXES[document_type]}_{data.order.order_number}_{epoch_ms()}.pdf"
            )
            file_path = self.output_dir / filename
            render = asyncio.ensure_future(
                asyncio.to_thread(self._render_to_file, renderer, data, options.compress, file_path)
            )
            try:
                file_size, page_count = await asyncio.shield(render)
            except asyncio.CancelledError:
                # The worker thread cannot be stopped; drop its file once it lands
                render.add_done_callback(lambda task: _discard_output(task, file_path))
                raise
        except Exception as exc:  # noqa: BLE001 - converted to a failure result
            LOGGER.error("Failed to generate %s for order %s: %s",
                         document_type, data.order.order_number, exc, exc_info=True)
            return DocumentGenerationResult(success=False, error=str(exc) or exc.__class__.__name__)

        generation_time_ms = int((time.perf_counter() - started) * 1000)
        LOGGER.debug("Generated %s (%d bytes) in %dms", file_path, file_size, generation_time_ms)
        return DocumentGenerationResult(
            success=True,
            file_path=str(file_path),
            metadata=DocumentMetadata(
                file_size=file_size,
                generation_time_ms=generation_time_ms,
                page_count=page_count,
            ),
        )

    async def generate_receipt(self, data: DocumentTemplateData,
                               options: Optional[DocumentGenerationOptions] = None) -> DocumentGenerationResult:
        return await self.generate_document("receipt", data, options)

    async def generate_pick_slip(self, data: DocumentTemplateData,
                                 options: Optional[DocumentGenerationOptions] = None) -> DocumentGenerationResult:
        return await self.generate_document("pick_slip", data, options)

    async def upload_document(self, file_path: str, file_name: str) -> UploadedDocument:
        """Upload a generated file; raises StorageError when the upload is unsuccessful."""
        if self.storage is None:
            raise StorageError("Storage is not configured")
        result = await self.storage.upload_file(file_path, file_name, UPLOAD_FOLDER)
        if not result.success:
            raise StorageError(result.error or "Upload failed")
        return UploadedDocument(file_url=result.file_url, file_path=result.storage_path)

    async def generate_both_documents(self, order_data: OrderWithDetails,
                                      options: Optional[DocumentGenerationOptions] = None
                                      ) -> Dict[str, DocumentGenerationResult]:
        """Render receipt and pick slip concurrently; each outcome is independent."""
        if options is not None and options.filename:
            # One caller filename cannot name two files
            options = dataclasses.replace(options, filename=None)
        receipt, pick_slip = await asyncio.gather(
            self.generate_receipt(self.prepare_template_data(order_data, "receipt"), options),
            self.generate_pick_slip(self.prepare_template_data(order_data, "pick_slip"), options),
        )
        return {"receipt": receipt, "pick_slip": pick_slip}

    @staticmethod
    def prepare_template_data(order_data: OrderWithDetails, document_type: str) -> DocumentTemplateData:
        return DocumentTemplateData(
            order=order_data.order,
            items=list(order_data.items),
            addons=list(order_data.addons),
            generated_at=datetime.now(UTC).astimezone(),
            document_type=document_type,
            company_info=DEFAULT_COMPANY_INFO,
        )

    # ------------------------------------------------------------------ #
    # Local maintenance
    # ------------------------------------------------------------------ #

    def _pdf_files(self):
        if not self.output_dir.is_dir():
            return []
        return [p for p in self.output_dir.iterdir() if p.is_file() and p.suffix == ".pdf"]

    def cleanup_old_files(self, max_age_hours: int = 24) -> int:
        """Delete local PDFs older than `max_age_hours`; returns the count."""
        cutoff = time.time() - max_age_hours * 3600
        removed = 0
        for path in self._pdf_files():
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as exc:
                LOGGER.warning("Could not remove %s: %s", path, exc)
        if removed:
            LOGGER.info("Cleaned up %d old local document(s) from %s", removed, self.output_dir)
        return removed

    def get_service_stats(self) -> dict:
        now = time.time()
        entries = []
        for path in self._pdf_files():
            try:
                stat = path.stat()
            except OSError:
                continue
            entries.append((path.name, stat.st_size, stat.st_mtime))

        stats = {
            "output_dir": str(self.output_dir),
            "total_files": len(entries),
            "total_size": sum(size for _, size, _ in entries),
            "oldest_file": None,
            "newest_file": None,
        }
        if entries:
            oldest = min(entries, key=lambda e: e[2])
            newest = max(entries, key=lambda e: e[2])
            stats["oldest_file"] = {"name": oldest[0], "age_minutes": round((now - oldest[2]) / 60, 1)}
            stats["newest_file"] = {"name": newest[0], "age_minutes": round((now - newest[2]) / 60, 1)}
        return stats


def remove_local_file(file_path: Optional[str]) -> None:
    """Best-effort temp file removal; errors are logged and ignored."""
    if not file_path:
        return
    try:
        os.remove(file_path)
    except OSError as exc:
        LOGGER.debug("Temp file %s not removed: %s", file_path, exc)


def _discard_output(task: "asyncio.Future[Tuple[int, int]]", file_path: Path) -> None:
    if task.cancelled() or task.exception() is not None:
        return
    LOGGER.warning("Discarding %s rendered after its request was abandoned", file_path)
    remove_local_file(str(file_path))


__all__ = ["PDFGenerationService", "RENDERERS", "UPLOAD_FOLDER", "epoch_ms", "remove_local_file"]
